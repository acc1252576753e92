"""PayHere checksum helpers.

The gateway signs with
`UPPER(MD5(merchant_id + order_id + amount + currency [+ status_code] + UPPER(MD5(secret))))`.
"""

import hashlib
import hmac
from decimal import Decimal


def _md5_upper(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def format_amount(amount: Decimal | float | str) -> str:
    """Two decimals, no thousands separator: the gateway's amount format."""

    return f"{Decimal(str(amount)):.2f}"


def checkout_hash(merchant_id: str, order_id: str, amount: str, currency: str, merchant_secret: str) -> str:
    """Hash sent with the checkout form."""

    return _md5_upper(f"{merchant_id}{order_id}{amount}{currency}{_md5_upper(merchant_secret)}")


def expected_signature(
    merchant_id: str,
    order_id: str,
    amount: str,
    currency: str,
    status_code: str,
    merchant_secret: str,
) -> str:
    return _md5_upper(f"{merchant_id}{order_id}{amount}{currency}{status_code}{_md5_upper(merchant_secret)}")


def verify_signature(
    merchant_id: str,
    order_id: str,
    amount: str,
    currency: str,
    status_code: str,
    supplied_signature: str,
    merchant_secret: str,
) -> bool:
    """Recompute the notification signature and compare in constant time."""

    if not supplied_signature or not supplied_signature.isascii():
        return False
    expected = expected_signature(merchant_id, order_id, amount, currency, status_code, merchant_secret)
    return hmac.compare_digest(expected, supplied_signature.strip().upper())
