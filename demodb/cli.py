from __future__ import annotations

import sys

from .errors import FetchError
from .fetcher import DATA_DIR, SOURCE_URL, fetch_dataset
from .logging_utils import configure_logging


def main() -> int:
    configure_logging()
    print(f"Fetching dataset from {SOURCE_URL}...")
    try:
        result = fetch_dataset()
    except FetchError as exc:
        print(f"Failed to fetch dataset: {exc}", file=sys.stderr)
        return 1

    print(f"Done. {result.init_sql_path} written ({result.init_sql_bytes} bytes) in {DATA_DIR.resolve()}")
    return 0
