"""Download the Postgres Pro demo bookings dataset and promote it to init.sql.

The archive is fetched, extracted next to itself, and the versioned SQL dump
inside it is copied to a fixed name so database bootstrap scripts do not need
to know the dataset release.
"""
from __future__ import annotations

import logging
import shutil
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import requests

from .errors import ArchiveError, FilesystemError, NetworkError


logger = logging.getLogger(__name__)

SOURCE_URL = "https://edu.postgrespro.com/demo-small-en.zip"
DATA_DIR = Path("data")
ARCHIVE_NAME = "demo-small-en.zip"
EXTRACTED_NAME = "demo-small-en-20170815.sql"
CANONICAL_NAME = "init.sql"

REQUEST_TIMEOUT = 60
CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class FetchResult:
    data_dir: Path
    archive_path: Path
    init_sql_path: Path
    archive_bytes: int
    init_sql_bytes: int
    extracted: Tuple[str, ...]
    cleaned_up: bool


def ensure_output_dir(data_dir: Path) -> Path:
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(f"Cannot create output directory {data_dir}: {exc}") from exc
    return data_dir


def download_archive(url: str, dest: Path) -> int:
    """Stream ``url`` into ``dest`` and return the number of bytes written.

    The response status is checked before ``dest`` is opened, so an HTTP
    error never truncates an archive left by a previous run.
    """
    logger.info("Downloading %s to %s", url, dest)
    try:
        resp = requests.get(url, stream=True, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        raise NetworkError(f"Request to {url} failed: {exc}") from exc

    written = 0
    try:
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise NetworkError(f"Download of {url} failed: {exc}") from exc

        try:
            with dest.open("wb") as f:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        except requests.RequestException as exc:
            raise NetworkError(f"Download of {url} interrupted: {exc}") from exc
        except OSError as exc:
            raise NetworkError(f"Cannot write {dest}: {exc}") from exc
    finally:
        resp.close()

    logger.info("Downloaded %d bytes", written)
    return written


def extract_archive(archive: Path, data_dir: Path) -> Tuple[str, ...]:
    logger.info("Extracting %s into %s", archive, data_dir)
    try:
        with zipfile.ZipFile(archive) as zf:
            names = tuple(zf.namelist())
            zf.extractall(data_dir)
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"{archive} is not a valid ZIP archive: {exc}") from exc
    except (zlib.error, RuntimeError, NotImplementedError, EOFError) as exc:
        # Readable directory but damaged, encrypted or unsupported entries
        raise ArchiveError(f"{archive} is corrupt: {type(exc).__name__}: {exc}") from exc
    except OSError as exc:
        raise ArchiveError(f"Cannot extract {archive}: {exc}") from exc
    logger.debug("Extracted entries: %s", ", ".join(names))
    return names


def promote_canonical(
    data_dir: Path,
    extracted_name: str = EXTRACTED_NAME,
    canonical_name: str = CANONICAL_NAME,
) -> Path:
    """Copy the extracted dump to its canonical name and return the new path.

    A missing source raises before the canonical file is opened, so an
    existing ``init.sql`` is left as it was.
    """
    source = data_dir / extracted_name
    target = data_dir / canonical_name
    if not source.is_file():
        raise FilesystemError(f"Expected extracted file {source} is missing")
    try:
        shutil.copyfile(source, target)
    except OSError as exc:
        raise FilesystemError(f"Cannot copy {source} to {target}: {exc}") from exc
    logger.info("Promoted %s to %s", source.name, target)
    return target


def cleanup_extracted(path: Path) -> bool:
    """Best-effort delete of ``path``. Returns True if a file was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("Could not remove %s: %s", path, exc)
        return False
    return True


def fetch_dataset(data_dir: Path = DATA_DIR, url: str = SOURCE_URL) -> FetchResult:
    ensure_output_dir(data_dir)

    archive_path = data_dir / ARCHIVE_NAME
    archive_bytes = download_archive(url, archive_path)

    extracted = extract_archive(archive_path, data_dir)

    init_sql_path = promote_canonical(data_dir)
    cleaned_up = cleanup_extracted(data_dir / EXTRACTED_NAME)

    return FetchResult(
        data_dir=data_dir,
        archive_path=archive_path,
        init_sql_path=init_sql_path,
        archive_bytes=archive_bytes,
        init_sql_bytes=init_sql_path.stat().st_size,
        extracted=extracted,
        cleaned_up=cleaned_up,
    )
