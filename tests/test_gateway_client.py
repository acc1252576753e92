"""Payment retrieval client against a mocked gateway."""

from decimal import Decimal

import httpx

from regpay.services.payments.gateway_client import PayHereClient

ORDER = "ORDER-AC2025-00026-265305"


def _search_payload(status="RECEIVED", amount=8000):
    return {
        "status": 1,
        "msg": f"Payments with order_id:{ORDER}",
        "data": [
            {
                "payment_id": 320025071812345,
                "order_id": ORDER,
                "date": "2025-07-18 10:15:02",
                "status": status,
                "currency": "LKR",
                "amount": amount,
                "payment_method": {
                    "method": "VISA",
                    "card_customer_name": "Ann Perera",
                    "card_no": "************1292",
                },
            }
        ],
    }


def _client(search, requests=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if request.url.path == "/merchant/v1/oauth/token":
            return httpx.Response(200, json={"access_token": "tok-123", "token_type": "bearer"})
        if request.url.path == "/merchant/v1/payment/search":
            assert request.headers["Authorization"] == "Bearer tok-123"
            assert request.url.params["order_id"] == ORDER
            return search()
        return httpx.Response(404)

    return PayHereClient(
        "https://sandbox.payhere.lk",
        "app-id",
        "app-secret",
        transport=httpx.MockTransport(handler),
    )


def test_received_maps_to_completed():
    requests = []
    client = _client(lambda: httpx.Response(200, json=_search_payload()), requests)

    outcome = client.fetch_outcome(ORDER)

    assert outcome.target == "COMPLETED"
    assert outcome.amount == Decimal("8000.00")
    assert outcome.currency == "LKR"
    assert outcome.fields["gateway_payment_id"] == "320025071812345"
    assert outcome.fields["card_holder_name"] == "Ann Perera"
    assert requests[0].headers["Authorization"].startswith("Basic ")


def test_cancelled_maps_to_cancelled():
    client = _client(lambda: httpx.Response(200, json=_search_payload(status="CANCELLED")))

    assert client.fetch_outcome(ORDER).target == "CANCELLED"


def test_refunded_needs_manual_review():
    client = _client(lambda: httpx.Response(200, json=_search_payload(status="REFUNDED")))

    assert client.fetch_outcome(ORDER) is None


def test_no_payments_found_is_unknown():
    client = _client(lambda: httpx.Response(200, json={"status": -1, "msg": "No payments found", "data": None}))

    assert client.fetch_outcome(ORDER) is None


def test_non_object_payload_is_unknown():
    """JSON that is not an object, or a malformed `data` field, collapses to unknown."""

    payload = _search_payload()
    payload["data"][0]["payment_method"] = "VISA"
    as_list = _client(lambda: httpx.Response(200, json=[1, 2]))
    bad_data = _client(lambda: httpx.Response(200, json={"status": 1, "data": 7}))
    bad_method = _client(lambda: httpx.Response(200, json=payload))

    assert as_list.fetch_outcome(ORDER) is None
    assert bad_data.fetch_outcome(ORDER) is None
    outcome = bad_method.fetch_outcome(ORDER)
    assert outcome.target == "COMPLETED"
    assert "payment_method" not in outcome.fields


def test_http_error_is_unknown():
    client = _client(lambda: httpx.Response(500, text="upstream down"))

    assert client.fetch_outcome(ORDER) is None


def test_unconfigured_client_makes_no_calls():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    client = PayHereClient("https://sandbox.payhere.lk", "", "", transport=httpx.MockTransport(handler))

    assert client.fetch_outcome(ORDER) is None
    assert requests == []
