from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
import posixpath
import time
from dataclasses import dataclass
from datetime import date, datetime
from ftplib import FTP, all_errors as ftp_errors
from pathlib import Path
from typing import List, Mapping, Optional, Tuple, Union

import httpx
import paramiko

from supplier_import.business.suppliers import FtpSource, HttpSource, SftpSource

logger = logging.getLogger(__name__)

FTP_TIMEOUT = 300


@dataclass(frozen=True)
class FtpParams:
    host: str
    user: str
    password: str
    path: str
    port: int = 21
    pick_latest: bool = False


@dataclass(frozen=True)
class SftpParams:
    host: str
    user: str
    password: str
    path: str
    port: int = 22


@dataclass(frozen=True)
class HttpParams:
    url: str
    timeout: float = 60.0


ConnectionParams = Union[FtpParams, SftpParams, HttpParams]
FeedSource = Union[FtpSource, SftpSource, HttpSource]


def _env(env: Mapping[str, str], key: str, default: str = "") -> str:
    return (env.get(key) or default).strip()


def _port(env: Mapping[str, str], key: str, default: int) -> Optional[int]:
    raw = _env(env, key, str(default))
    try:
        port = int(raw)
    except ValueError:
        port = 0
    if not 0 < port < 65536:
        logger.error("Некорректный порт %s=%r", key, raw)
        return None
    return port


def resolve_connection(source: FeedSource, env: Mapping[str, str] = None, today: date = None) -> Optional[ConnectionParams]:
    """
    Дополняет описание источника учётными данными из окружения.
    None: если чего-то не хватает (это TransportFailure для поставщика).
    """
    env = os.environ if env is None else env
    today = today or date.today()
    p = source.env_prefix

    if isinstance(source, HttpSource):
        url = _env(env, f"{p}_FEED_URL", source.url)
        if not url:
            logger.error("[%s] URL фида не задан (%s_FEED_URL)", p, p)
            return None
        return HttpParams(url=url, timeout=source.timeout)

    if isinstance(source, SftpSource):
        user, password = _env(env, f"{p}_SFTP_USER"), _env(env, f"{p}_SFTP_PASS")
        if not user or not password:
            logger.error("[%s] SFTP credentials не заданы", p)
            return None
        port = _port(env, f"{p}_SFTP_PORT", source.port)
        if port is None:
            return None
        return SftpParams(
            host=_env(env, f"{p}_SFTP_HOST", source.host),
            port=port,
            user=user,
            password=password,
            path=_env(env, f"{p}_SFTP_FILE", source.path),
        )

    user, password = _env(env, f"{p}_FTP_USER"), _env(env, f"{p}_FTP_PASS")
    host = _env(env, f"{p}_FTP_HOST", source.host)
    if not host or not user or not password:
        logger.error("[%s] FTP credentials не заданы", p)
        return None
    port = _port(env, f"{p}_FTP_PORT", source.port)
    if port is None:
        return None
    path = _env(env, f"{p}_FTP_FILE", source.path).replace("{date}", today.strftime("%Y-%m-%d"))
    return FtpParams(
        host=host,
        port=port,
        user=user,
        password=password,
        path=path,
        pick_latest=source.pick_latest,
    )


def _local_target(temp_dir: Path, remote_name: str) -> Path:
    temp_dir.mkdir(parents=True, exist_ok=True)
    stem = Path(posixpath.basename(remote_name.rstrip("/")) or "feed").stem
    return temp_dir / f"{stem}_{int(time.time())}.csv"


def _finalize(local: Path) -> Optional[Path]:
    if not local.exists():
        return None
    if local.stat().st_size == 0:
        logger.error("Скачан пустой файл %s, удаляем", local.name)
        local.unlink(missing_ok=True)
        return None
    return local


# ---------------------------
# FTP
# ---------------------------
def _list_files_with_mtime(ftp: FTP, directory: str, pattern: str) -> List[Tuple[str, datetime]]:
    try:
        names = ftp.nlst(directory) if directory else ftp.nlst()
    except ftp_errors as e:
        logger.error(f"Ошибка получения списка файлов: {e}")
        return []

    files: List[Tuple[str, datetime]] = []
    for index, name in enumerate(names):
        if not fnmatch.fnmatch(posixpath.basename(name), pattern):
            continue
        try:
            mdtm = ftp.sendcmd(f"MDTM {name}")
            mtime = datetime.strptime(mdtm.replace("213 ", "").strip()[:14], "%Y%m%d%H%M%S")
        except (ftp_errors, ValueError):
            # без MDTM: порядок NLST
            mtime = datetime.min.replace(microsecond=min(index, 999999))
        files.append((name, mtime))

    return sorted(files, key=lambda x: x[1], reverse=True)


def _pick_remote_file(ftp: FTP, params: FtpParams) -> Optional[str]:
    path = params.path
    has_wildcard = any(ch in path for ch in "*?[")
    if not params.pick_latest and not has_wildcard:
        return path

    if has_wildcard:
        directory, pattern = posixpath.split(path)
    else:
        directory, pattern = path.rstrip("/"), "*.csv"

    files = _list_files_with_mtime(ftp, directory, pattern)
    if not files:
        logger.error("На FTP %s нет файлов по маске %s", params.host, path)
        return None
    name = files[0][0]
    if directory and "/" not in name:
        name = posixpath.join(directory, name)
    return name


def _download_ftp(params: FtpParams, temp_dir: Path) -> Optional[Path]:
    local: Optional[Path] = None
    try:
        with FTP(timeout=FTP_TIMEOUT) as ftp:
            ftp.connect(params.host, params.port)
            ftp.login(params.user, params.password)
            ftp.set_pasv(True)
            ftp.encoding = "latin1"

            remote = _pick_remote_file(ftp, params)
            if not remote:
                return None

            local = _local_target(temp_dir, remote)
            logger.info("FTP %s: скачиваем %s -> %s", params.host, remote, local.name)
            with open(local, "wb") as fh:
                ftp.retrbinary(f"RETR {remote}", fh.write)
    except (ftp_errors, OSError) as e:
        logger.error("Ошибка FTP %s (%s): %s", params.host, params.path, e)
        if local is not None:
            local.unlink(missing_ok=True)
        return None
    return _finalize(local)


# ---------------------------
# SFTP
# ---------------------------
def _download_sftp(params: SftpParams, temp_dir: Path) -> Optional[Path]:
    local = _local_target(temp_dir, params.path)
    transport = None
    try:
        transport = paramiko.Transport((params.host, params.port))
        transport.banner_timeout = FTP_TIMEOUT
        transport.connect(username=params.user, password=params.password)
        sftp = paramiko.SFTPClient.from_transport(transport)
        try:
            logger.info("SFTP %s:%s: скачиваем %s -> %s", params.host, params.port, params.path, local.name)
            sftp.get(params.path, str(local))
        finally:
            sftp.close()
    except (paramiko.SSHException, OSError) as e:
        logger.error("Ошибка SFTP %s:%s (%s): %s", params.host, params.port, params.path, e)
        local.unlink(missing_ok=True)
        return None
    finally:
        if transport is not None:
            transport.close()
    return _finalize(local)


# ---------------------------
# HTTP
# ---------------------------
async def _download_http(params: HttpParams, temp_dir: Path, transport: httpx.AsyncBaseTransport = None) -> Optional[Path]:
    headers = {"User-Agent": "Mozilla/5.0"}
    try:
        async with httpx.AsyncClient(headers=headers, timeout=params.timeout, transport=transport, follow_redirects=True) as client:
            resp = await client.get(params.url)
            resp.raise_for_status()
            content = resp.content
    except httpx.HTTPError as e:
        logger.error(f"Ошибка загрузки фида {params.url}: {e}")
        return None

    local = _local_target(temp_dir, httpx.URL(params.url).path or "feed")
    local.write_bytes(content)
    return _finalize(local)


async def fetch(params: ConnectionParams, temp_dir: Path, *, http_transport: httpx.AsyncBaseTransport = None) -> Optional[Path]:
    """
    Скачивает файл фида во временную папку.
    :return: путь к локальному файлу или None (нет файла в этот запуск)
    """
    if isinstance(params, HttpParams):
        return await _download_http(params, temp_dir, http_transport)
    if isinstance(params, SftpParams):
        return await asyncio.to_thread(_download_sftp, params, temp_dir)
    return await asyncio.to_thread(_download_ftp, params, temp_dir)


async def fetch_feed(source: FeedSource, temp_dir: Path) -> Optional[Path]:
    params = resolve_connection(source)
    if params is None:
        return None
    return await fetch(params, temp_dir)
