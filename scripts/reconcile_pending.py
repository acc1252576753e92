"""Trigger the pending-payment sweep, once or on an interval (cron/sidecar use)."""

import argparse
import json
import time

import httpx


def sweep(base_url: str, api_key: str, older_than_seconds: int | None, limit: int) -> dict:
    resp = httpx.post(
        f"{base_url}/internal/reconciliation/sweep",
        json={"older_than_seconds": older_than_seconds, "limit": limit},
        headers={"x-api-key": api_key},
        timeout=120.0,
    )
    resp.raise_for_status()
    return resp.json()


def main() -> None:
    parser = argparse.ArgumentParser(description="Reconcile stale PENDING payments against the gateway.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--api-key", default="dev-secret")
    parser.add_argument("--older-than-seconds", type=int, default=None)
    parser.add_argument("--limit", type=int, default=100)
    parser.add_argument("--interval", type=float, default=0.0, help="Repeat every N seconds; 0 runs once")
    args = parser.parse_args()

    while True:
        try:
            summary = sweep(args.base_url, args.api_key, args.older_than_seconds, args.limit)
            print(json.dumps(summary))
        except httpx.HTTPError as exc:
            if args.interval <= 0:
                raise
            print(f"sweep_failed error={exc}")
        if args.interval <= 0:
            break
        time.sleep(args.interval)


if __name__ == "__main__":
    main()
