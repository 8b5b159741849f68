from alembic import op
import sqlalchemy as sa

# Начальная схема импорта поставщиков
revision = '4f2c1a9e7b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'products',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('sku', sa.String(), nullable=False),
        sa.Column('local_stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('type', sa.String(), nullable=True),
        sa.Column('brand', sa.String(), nullable=True),
        sa.Column('external_system_id', sa.String(), nullable=True),
        sa.Column('stock_status', sa.String(), nullable=True),
        sa.Column('best_offer_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_offer_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
    )

    op.create_table(
        'product_offers',
        sa.Column('product_id', sa.BigInteger(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('product_id', 'supplier_id', name='pk_product_offers'),
    )
    op.create_index('ix_product_offers_supplier', 'product_offers', ['supplier_id'])

    op.create_table(
        'product_attributes',
        sa.Column('product_id', sa.BigInteger(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('key', sa.String(64), nullable=False),
        sa.Column('value', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('product_id', 'key', name='pk_product_attributes'),
    )

    op.create_table(
        'supplier_coefficients',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('supplier', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=True),
        sa.Column('brand', sa.String(), nullable=True),
        sa.Column('coefficient', sa.Numeric(10, 4), nullable=False),
    )
    op.create_index('ix_supplier_coefficients_supplier', 'supplier_coefficients', ['supplier'])


def downgrade():
    op.drop_index('ix_supplier_coefficients_supplier', table_name='supplier_coefficients')
    op.drop_table('supplier_coefficients')
    op.drop_table('product_attributes')
    op.drop_index('ix_product_offers_supplier', table_name='product_offers')
    op.drop_table('product_offers')
    op.drop_table('products')
