import time
from pathlib import Path

import requests

BASE = "http://127.0.0.1:8000"
OUT = Path("init.sql")


def main() -> int:
    try:
        r = requests.post(f"{BASE}/trigger_fetch", timeout=30)
        r.raise_for_status()
        fetch_id = r.json()["fetch_id"]
    except Exception as exc:
        print(f"Failed to trigger fetch: {exc}")
        return 1

    for _ in range(240):  # up to ~120s
        try:
            s = requests.get(f"{BASE}/get_fetch", params={"fetch_id": fetch_id}, timeout=30)
            if s.headers.get("X-Fetch-Status") == "Complete":
                OUT.write_bytes(s.content)
                print(f"Saved {OUT.resolve()}")
                return 0
            if s.status_code >= 400:
                print(f"Fetch lookup failed: {s.status_code} {s.text}")
                return 3
            if s.text == "Failed":
                d = requests.get(f"{BASE}/debug_fetch", params={"fetch_id": fetch_id}, timeout=30)
                print(f"Fetch failed: {d.json().get('error_message')}")
                return 3
            # Still running
            time.sleep(0.5)
        except requests.RequestException:
            time.sleep(0.5)
    print("Timed out waiting for fetch")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
