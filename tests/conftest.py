import io
import os
import struct
import tempfile
import zipfile
from pathlib import Path

import pytest
import requests

# The ledger engine is built at import time, so point it at SQLite first.
_DB_DIR = tempfile.mkdtemp(prefix="demodb-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'ledger.db'}"

from demodb import fetcher  # noqa: E402

DUMP = b"SET statement_timeout = 0;\nCREATE DATABASE demo;\n\\connect demo\nCREATE TABLE bookings.aircrafts ();\n"


def make_zip(entries: dict) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


def corrupt_deflate(archive: bytes) -> bytes:
    """Invert bytes in the middle of the first entry's compressed data."""
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        info = zf.infolist()[0]
    name_len, extra_len = struct.unpack("<HH", archive[info.header_offset + 26 : info.header_offset + 30])
    data_start = info.header_offset + 30 + name_len + extra_len
    mid = data_start + info.compress_size // 2
    damaged = bytes(b ^ 0xFF for b in archive[mid : mid + 8])
    return archive[:mid] + damaged + archive[mid + 8 :]


def mark_encrypted(archive: bytes) -> bytes:
    """Set the encryption flag on the first entry without encrypting it."""
    buf = bytearray(archive)
    for signature, flag_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        pos = buf.find(signature) + flag_offset
        (flags,) = struct.unpack("<H", buf[pos : pos + 2])
        buf[pos : pos + 2] = struct.pack("<H", flags | 0x1)
    return bytes(buf)


class FakeResponse:
    def __init__(self, content: bytes = b"", status_code: int = 200):
        self.content = content
        self.status_code = status_code
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error", response=self)

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i : i + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeServer:
    """Stands in for requests.get; records every call it receives."""

    def __init__(self):
        self.calls = []
        self.responses = []

    def queue(self, item) -> None:
        self.responses.append(item)

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def server(monkeypatch):
    fake = FakeServer()
    monkeypatch.setattr(fetcher.requests, "get", fake)
    return fake


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path
