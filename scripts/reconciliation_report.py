"""Fetch and print the payment/registration reconciliation report JSON."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for reconciliation checks."""

    parser = argparse.ArgumentParser(description="Fetch the registration reconciliation report.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--api-key", default="dev-secret")
    parser.add_argument("--limit", type=int, default=1000)
    parser.add_argument("--order-id", help="Show one payment instead of the global report")
    parser.add_argument("--repair", action="store_true", help="Fill in missing registrations for --order-id")
    args = parser.parse_args()

    headers = {"x-api-key": args.api_key}
    if args.order_id and args.repair:
        resp = httpx.post(f"{args.base_url}/internal/reconciliation/{args.order_id}/repair", headers=headers, timeout=30.0)
    elif args.order_id:
        resp = httpx.get(f"{args.base_url}/internal/reconciliation/{args.order_id}", headers=headers, timeout=10.0)
    else:
        resp = httpx.get(
            f"{args.base_url}/internal/reconciliation",
            params={"limit": args.limit},
            headers=headers,
            timeout=10.0,
        )
    resp.raise_for_status()
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
