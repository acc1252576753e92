"""Startup-time helpers for safe config logging."""

import os
import re

from regpay.common.logging import logger


SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN")
_DSN_PASSWORD = re.compile(r"(://[^:/@]+:)[^@]+@")


def _safe_env(name: str) -> str:
    """Return env value with secrets redacted and DSN passwords masked."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(marker in name for marker in SECRET_MARKERS):
        return "<redacted>"
    if name.endswith("DSN"):
        return _DSN_PASSWORD.sub(r"\1***@", value)
    return value


def log_startup_config(service_name: str, keys: list[str]) -> None:
    """Log selected startup config keys for quick troubleshooting."""

    config = {"service": service_name}
    for key in keys:
        config[key] = _safe_env(key)
    logger.info("startup_config=%s", config)
