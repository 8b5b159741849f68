from __future__ import annotations

from supplier_import.models import Product, ProductOffer, TimestampMixin


def test_timestamp_columns_come_from_plain_mixin() -> None:
    assert issubclass(Product, TimestampMixin)
    for model in (Product, ProductOffer):
        columns = model.__table__.c
        assert "created_at" in columns
        assert "updated_at" in columns
        assert columns.created_at.server_default is not None
