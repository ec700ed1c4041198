"""Integration tests for the payment endpoints."""

from marketplace.order.queries import iter_orders
from marketplace.payment.verifier.hmac_adapter import sign


def _verify_body(draft, payment_id="pay_API1", signature=None):
    return {
        "gateway_order_id": "order_API1",
        "gateway_payment_id": payment_id,
        "signature": signature or sign("order_API1", payment_id, "changethis"),
        "order": draft,
    }


class TestVerifyPayment:
    def test_verified_payment(self, client, draft_payload):
        response = client.post("/payments/verify", json=_verify_body(draft_payload()))
        assert response.status_code == 201
        data = response.json()
        assert data["order_id"].startswith("ORD")
        assert data["payment_method"] == "online"
        assert data["payment_status"] == "completed"
        assert data["total_amount"] == 560.0

    def test_bad_signature(self, client, draft_payload):
        response = client.post("/payments/verify", json=_verify_body(draft_payload(), signature="0" * 64))
        assert response.status_code == 400
        assert response.json()["error"] == "payment_verification_failed"
        assert list(iter_orders()) == []

    def test_duplicate_payment(self, client, draft_payload):
        client.post("/payments/verify", json=_verify_body(draft_payload()))
        response = client.post("/payments/verify", json=_verify_body(draft_payload()))
        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_payment_reference"
        assert len(list(iter_orders())) == 1

    def test_invalid_total(self, client, draft_payload):
        response = client.post("/payments/verify", json=_verify_body(draft_payload(total_amount=0)))
        assert response.status_code == 422


class TestCashOnDelivery:
    def test_cod_order(self, client, draft_payload):
        response = client.post("/payments/cod", json={"order": draft_payload(total_amount=500.0)})
        assert response.status_code == 201
        data = response.json()
        assert data["total_amount"] == 510.0
        assert data["payment_method"] == "cod"
        assert data["payment_status"] == "pending"
