"""Integration tests for the settlement endpoints."""

from datetime import UTC, datetime, timedelta

import pytest

from marketplace.order.order import OrderStatus

WEEK_START = datetime(2024, 3, 4, tzinfo=UTC)


@pytest.fixture()
def delivered_week(place_online_order, advance, backdate):
    orders = []
    for payment_id, total, offset in (("pay_1", 1000.0, timedelta(hours=3)), ("pay_2", 2000.0, timedelta(days=6))):
        order = place_online_order(payment_id=payment_id, total_amount=total)
        advance(order.order_id, OrderStatus.DELIVERED)
        orders.append(backdate(order.order_id, WEEK_START + offset))
    return orders


class TestSettlementEndpoint:
    def test_week_settlement(self, client, delivered_week):
        response = client.get("/settlements/seller-001", params={"start": "2024-03-04", "end": "2024-03-10"})
        assert response.status_code == 200
        data = response.json()
        assert data["week"] == "2024-W10"
        assert data["order_count"] == 2
        assert data["gross_revenue"] == "3000.00"
        assert data["platform_fee"] == "150.00"
        assert data["tax_withheld"] == "90.00"
        assert data["net_payable"] == "2760.00"
        assert data["order_ids"] == [o.order_id for o in delivered_week]

    def test_end_date_is_inclusive(self, client, delivered_week):
        response = client.get("/settlements/seller-001", params={"start": "2024-03-10", "end": "2024-03-10"})
        assert response.json()["order_count"] == 1

    def test_datetime_bounds(self, client, delivered_week):
        response = client.get(
            "/settlements/seller-001",
            params={"start": "2024-03-04T00:00:00+00:00", "end": "2024-03-04T12:00:00+00:00"},
        )
        assert response.json()["order_count"] == 1

    def test_invalid_date(self, client):
        response = client.get("/settlements/seller-001", params={"start": "yesterday", "end": "2024-03-10"})
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
        assert "Invalid date" in response.json()["message"]

    def test_inverted_period(self, client):
        response = client.get("/settlements/seller-001", params={"start": "2024-03-10", "end": "2024-03-04"})
        assert response.status_code == 422
        assert response.json()["error"] == "settlement_computation_error"

    def test_csv_report(self, client, delivered_week):
        response = client.get(
            "/settlements/seller-001/report.csv", params={"start": "2024-03-04", "end": "2024-03-10"}
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "settlement-seller-001-20240304-20240310.csv" in response.headers["content-disposition"]
        assert delivered_week[0].order_id in response.text
        assert "Net Settlement,,2760.00" in response.text

    def test_weekly(self, client, delivered_week):
        response = client.get("/settlements/seller-001/weekly")
        assert response.status_code == 200
        assert [w["week"] for w in response.json()] == ["2024-W10"]

    def test_dashboard(self, client, delivered_week):
        response = client.get("/settlements/seller-001/dashboard")
        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["gross_revenue"] == "3000.00"
        assert len(data["past_weeks"]) == 4
        assert len(data["recent_orders"]) == 2
