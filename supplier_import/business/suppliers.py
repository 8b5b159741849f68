from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Tuple

from .errors import UnknownSupplierError
from .feed_parser import Row, SupplierFormat, _cell, _to_decimal, numeric_field


# ---------------------------
# источники фидов (без учётных данных: они в окружении)
# ---------------------------
@dataclass(frozen=True)
class FtpSource:
    env_prefix: str
    host: str
    path: str
    # path: каталог или маска: берём самый свежий файл по MDTM
    pick_latest: bool = False
    port: int = 21


@dataclass(frozen=True)
class SftpSource:
    env_prefix: str
    host: str
    path: str
    port: int = 22


@dataclass(frozen=True)
class HttpSource:
    env_prefix: str
    url: str = ""
    timeout: float = 60.0


PNEUPEX_FTP = "ftp.pneupex.sk"


# ---------------------------
# особенности отдельных поставщиков
# ---------------------------
def _latex_reject(row: Row) -> bool:
    ean = _cell(row, 13)
    if ean == "0":
        return True
    if _to_decimal(_cell(row, 9)) <= 0:
        return True
    return _cell(row, 29) == "STARE DOTY"


def _latex_extra(row: Row) -> Dict[str, str]:
    extra: Dict[str, str] = {}
    dot_raw = _cell(row, 35)
    dot = int(_to_decimal(dot_raw[3:])) if len(dot_raw) > 3 else 0
    if dot > 0:
        extra["dot"] = str(dot)
    if _cell(row, 38) == "DEMO DM":
        extra["is_demo"] = "1"
    return extra


def _ihle_extra(row: Row) -> Dict[str, str]:
    # в колонке 40 ссылка вида https://eprel.ec.europa.eu/qr/123456
    value = _cell(row, 40).rstrip("/").rsplit("/", 1)[-1]
    return {"eprel": value} if value.isdigit() else {}


SUPPLIER_FORMATS: Dict[str, SupplierFormat] = {
    f.name: f
    for f in (
        SupplierFormat(
            name="Handlopex",
            sku_columns=(12,), quantity_columns=(9,), price_column=10, skip_rows=1,
            extra_fields=numeric_field(22),
            sources=tuple(
                FtpSource("HANDLOPEX", PNEUPEX_FTP, f"handlopex/{name}")
                for name in ("pneupex_mw.csv", "pneupex_mde.csv", "pneupex_mx.csv")
            ),
        ),
        SupplierFormat(
            name="Vredestein",
            sku_columns=(0,), quantity_columns=(1,), price_column=4,
            sources=(FtpSource("VREDESTEIN", PNEUPEX_FTP, "vredestein/Vredestein.csv"),),
        ),
        SupplierFormat(
            name="Goodyear",
            sku_columns=(3,), quantity_columns=(5,), price_from_product=True,
            sources=(FtpSource("GOODYEAR", "ftp.goodyear.eu", "CONFIDENTIAL_GDYR_SK_STOCKREPORT_48h.csv"),),
        ),
        SupplierFormat(
            name="Alcar",
            sku_columns=(4,), quantity_columns=(1, 2), price_column=5, decimal_comma=True,
            sources=(SftpSource("ALCAR", "ftp.alcar-wheels.com", "SK_R_00.csv"),),
        ),
        SupplierFormat(
            name="VandenbanCZ",
            sku_columns=(1,), quantity_columns=(14,), price_column=13, decimal_comma=True,
            sku_as_int=True, extra_fields=numeric_field(26),
            sources=(FtpSource("VANDENBANCZ", PNEUPEX_FTP, "vandenbancz/801169_650.csv"),),
        ),
        SupplierFormat(
            name="GPD",
            sku_columns=(2,), quantity_columns=(16,), price_column=15, decimal_comma=True,
            extra_fields=numeric_field(27),
            sources=(FtpSource("GPD", "ftp.gpd.cz", "StavSkladuCenyE.csv"),),
        ),
        SupplierFormat(
            name="Continental",
            sku_columns=(3,), quantity_columns=(6,), skip_rows=3, price_from_product=True,
            sources=(FtpSource("CONTINENTAL", "ftp.pexstore.sk", "continental", pick_latest=True),),
        ),
        SupplierFormat(
            name="Bridgestone",
            sku_columns=(3,), quantity_columns=(6,), price_from_product=True,
            required_columns=(0, 3),
            sources=(SftpSource("BRIDGESTONE", "b-sftp.bridgestone.eu", "/SSK1/Bridgestone_STOCKREPORT.csv", port=3176),),
        ),
        SupplierFormat(
            name="Goodyear2-Nemecko",
            sku_columns=(3,), quantity_columns=(5,), price_from_product=True,
            sources=(FtpSource("GOODYEAR2", "ftp.goodyear.eu", "CONFIDENTIAL_GDYR_SK_STOCKREPORT_1.csv"),),
        ),
        SupplierFormat(
            name="Latex",
            sku_columns=(13,), quantity_columns=(4,), price_column=9, skip_rows=1,
            reject=_latex_reject, extra_fields=_latex_extra,
            sources=(HttpSource("LATEX"),),
        ),
        SupplierFormat(
            name="IHLE",
            sku_columns=(4, 29), quantity_columns=(9,), price_column=16, skip_rows=1,
            round_quantity=True, round_price=True, surcharge=Decimal("2.00"),
            extra_fields=_ihle_extra,
            sources=(FtpSource("IHLE", PNEUPEX_FTP, "ihle/PNEUPEXSKMug.csv"),),
        ),
        SupplierFormat(
            name="DobrePneu.cz",
            sku_columns=(1,), quantity_columns=(14,), price_column=5, skip_rows=1,
            decimal_comma=True, round_quantity=True, round_price=True, surcharge=Decimal("4.20"),
            sources=(FtpSource("DOBREPNEU", PNEUPEX_FTP, "dobrepneu/dobrepneu-765069.csv"),),
        ),
        SupplierFormat(
            name="Asteel",
            sku_columns=(15,), quantity_columns=(16,), price_column=17,
            sources=(FtpSource("ASTEEL", "server.tyrestock.sk", "stock_asteel_data_{date}.csv"),),
        ),
    )
}


def get_supplier_format(name: str) -> SupplierFormat:
    fmt = SUPPLIER_FORMATS.get(name)
    if fmt is None:
        raise UnknownSupplierError(f"Нет формата импорта для поставщика {name!r}")
    return fmt


def find_supplier_format(name: str) -> Optional[SupplierFormat]:
    return SUPPLIER_FORMATS.get(name)


def supplier_names() -> Tuple[str, ...]:
    return tuple(SUPPLIER_FORMATS)
