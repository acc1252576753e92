"""Startup config logging never prints secrets."""

from regpay.common.startup import _safe_env


def test_secret_names_redacted(monkeypatch):
    monkeypatch.setenv("PAYHERE_MERCHANT_SECRET", "s3cret")

    assert _safe_env("PAYHERE_MERCHANT_SECRET") == "<redacted>"


def test_dsn_password_masked(monkeypatch):
    monkeypatch.setenv("POSTGRES_DSN", "postgresql+psycopg://regpay:hunter2@db:5432/regpay")

    assert _safe_env("POSTGRES_DSN") == "postgresql+psycopg://regpay:***@db:5432/regpay"


def test_unset_and_plain_values(monkeypatch):
    monkeypatch.delenv("FRONTEND_URL", raising=False)
    monkeypatch.setenv("PAYHERE_MODE", "sandbox")

    assert _safe_env("FRONTEND_URL") == "<unset>"
    assert _safe_env("PAYHERE_MODE") == "sandbox"
