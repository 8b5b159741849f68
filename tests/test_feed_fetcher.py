from __future__ import annotations

from datetime import date
from pathlib import Path

import httpx
import pytest

from supplier_import.business.suppliers import FtpSource, HttpSource, SftpSource, get_supplier_format
from supplier_import.services.feed_fetcher import (
    FtpParams,
    HttpParams,
    SftpParams,
    fetch,
    resolve_connection,
)


def test_asteel_path_gets_today_date_substituted() -> None:
    source = get_supplier_format("Asteel").sources[0]
    env = {"ASTEEL_FTP_USER": "u", "ASTEEL_FTP_PASS": "p"}

    params = resolve_connection(source, env, today=date(2024, 3, 7))

    assert params == FtpParams(
        host="server.tyrestock.sk", user="u", password="p", path="stock_asteel_data_2024-03-07.csv"
    )


def test_env_overrides_host_port_and_file() -> None:
    source = FtpSource("GPD", "ftp.gpd.cz", "StavSkladuCenyE.csv")
    env = {
        "GPD_FTP_USER": "u",
        "GPD_FTP_PASS": "p",
        "GPD_FTP_HOST": "other.host",
        "GPD_FTP_PORT": "2121",
        "GPD_FTP_FILE": "x.csv",
    }

    params = resolve_connection(source, env)

    assert (params.host, params.port, params.path) == ("other.host", 2121, "x.csv")


def test_missing_credentials_give_no_connection() -> None:
    assert resolve_connection(FtpSource("GPD", "ftp.gpd.cz", "a.csv"), {"GPD_FTP_USER": "u"}) is None
    assert resolve_connection(SftpSource("ALCAR", "h", "a.csv"), {}) is None
    assert resolve_connection(HttpSource("LATEX"), {}) is None


def test_sftp_and_http_parameters() -> None:
    sftp = resolve_connection(
        SftpSource("BRIDGESTONE", "b-sftp.bridgestone.eu", "/SSK1/r.csv", port=3176),
        {"BRIDGESTONE_SFTP_USER": "u", "BRIDGESTONE_SFTP_PASS": "p"},
    )
    http = resolve_connection(HttpSource("LATEX"), {"LATEX_FEED_URL": " https://feed.example/latex.csv "})

    assert sftp == SftpParams(host="b-sftp.bridgestone.eu", user="u", password="p", path="/SSK1/r.csv", port=3176)
    assert http == HttpParams(url="https://feed.example/latex.csv", timeout=60)


@pytest.mark.asyncio
async def test_http_feed_is_saved_to_temp_dir(tmp_path: Path) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"a;1;2\n"))

    local = await fetch(HttpParams(url="https://feed.example/latex.csv"), tmp_path, http_transport=transport)

    assert local is not None
    assert local.parent == tmp_path
    assert local.name.startswith("latex_")
    assert local.read_bytes() == b"a;1;2\n"


@pytest.mark.asyncio
async def test_http_error_and_empty_body_mean_no_file(tmp_path: Path) -> None:
    not_found = httpx.MockTransport(lambda request: httpx.Response(404))
    empty = httpx.MockTransport(lambda request: httpx.Response(200, content=b""))

    assert await fetch(HttpParams(url="https://feed.example/a.csv"), tmp_path, http_transport=not_found) is None
    assert await fetch(HttpParams(url="https://feed.example/a.csv"), tmp_path, http_transport=empty) is None
    assert list(tmp_path.iterdir()) == []


def test_malformed_port_gives_no_connection() -> None:
    ftp_env = {"GPD_FTP_USER": "u", "GPD_FTP_PASS": "p", "GPD_FTP_PORT": "21a"}
    sftp_env = {"ALCAR_SFTP_USER": "u", "ALCAR_SFTP_PASS": "p", "ALCAR_SFTP_PORT": "70000"}

    assert resolve_connection(FtpSource("GPD", "ftp.gpd.cz", "a.csv"), ftp_env) is None
    assert resolve_connection(SftpSource("ALCAR", "h", "a.csv"), sftp_env) is None
