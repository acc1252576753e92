"""Race duplicate gateway notifications against browser returns for one order.

Run against a sandbox deployment after creating a checkout; the final status
poll should show exactly one registration per cart item.
"""

import argparse
import asyncio
import time
from collections import Counter

import httpx

from regpay.services.payments.signature import expected_signature


async def notify(client: httpx.AsyncClient, base_url: str, form: dict) -> tuple[str, int, float]:
    """Send one signed notification and return (kind, status_code, latency_ms)."""

    started = time.perf_counter()
    try:
        resp = await client.post(f"{base_url}/competitions/payment/notify", data=form)
        code = resp.status_code
    except httpx.HTTPError:
        code = 599
    return "notify", code, (time.perf_counter() - started) * 1000


async def browser_return(client: httpx.AsyncClient, base_url: str, order_id: str) -> tuple[str, int, float]:
    started = time.perf_counter()
    try:
        resp = await client.get(
            f"{base_url}/competitions/payment/return",
            params={"order_id": order_id},
            follow_redirects=False,
        )
        code = resp.status_code
    except httpx.HTTPError:
        code = 599
    return "return", code, (time.perf_counter() - started) * 1000


async def run(args: argparse.Namespace) -> None:
    form = {
        "merchant_id": args.merchant_id,
        "order_id": args.order_id,
        "payment_id": args.payment_id,
        "payhere_amount": args.amount,
        "payhere_currency": args.currency,
        "status_code": "2",
        "md5sig": expected_signature(
            args.merchant_id, args.order_id, args.amount, args.currency, "2", args.merchant_secret
        ),
        "method": "TEST",
        "status_message": "Successfully completed the payment.",
    }
    async with httpx.AsyncClient(timeout=10.0) as client:
        tasks = [notify(client, args.base_url, form) for _ in range(args.notifications)]
        tasks += [browser_return(client, args.base_url, args.order_id) for _ in range(args.returns)]
        results = await asyncio.gather(*tasks)
        status = await client.get(f"{args.base_url}/competitions/payment/status/{args.order_id}")

    print("status_counts=", dict(Counter((kind, code) for kind, code, _ in results)))
    print(f"max_latency_ms={max(latency for _, _, latency in results):.2f}")
    body = status.json()
    print(f"final_status={body.get('status')} registrations={len(body.get('registrations', []))}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--order-id", required=True)
    parser.add_argument("--amount", required=True, help="Exactly as sent at checkout, e.g. 8000.00")
    parser.add_argument("--currency", default="LKR")
    parser.add_argument("--merchant-id", required=True)
    parser.add_argument("--merchant-secret", required=True)
    parser.add_argument("--payment-id", default="320025071800000")
    parser.add_argument("--notifications", type=int, default=20)
    parser.add_argument("--returns", type=int, default=5)
    asyncio.run(run(parser.parse_args()))
