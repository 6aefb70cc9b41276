"""
Tests for the analytics API endpoint.
"""

from datetime import timedelta

from campaign_ops.models.enums import Role


def auth(principal):
    return {"X-User-Id": str(principal.id)}


def test_coupon_analytics_reflects_redemptions(client, principals, make_coupon):
    coupon_id = make_coupon(usage_limit=1)
    make_coupon()
    client.post(
        f"/coupons/{coupon_id}/redeem", headers=auth(principals[Role.MARKETER])
    )

    response = client.get(
        "/analytics/coupons", headers=auth(principals[Role.ANALYST])
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_coupons"] == 2
    assert data["total_redemptions"] == 1
    assert data["redemption_rate"] == "50.00"
    assert {"status": "depleted", "count": 1} in data["status_distribution"]
    assert data["top_coupons"][0]["redemption_count"] == 1


def test_anonymous_gets_401(client):
    response = client.get("/analytics/coupons")
    assert response.status_code == 401
    assert response.json()["code"] == "Unauthenticated"


def test_reversed_range_returns_422(client, principals):
    response = client.get(
        "/analytics/coupons",
        params={"start_date": "2026-02-01T00:00:00", "end_date": "2026-01-01T00:00:00"},
        headers=auth(principals[Role.ANALYST]),
    )
    assert response.status_code == 422


def test_window_excludes_older_coupons(client, principals, make_coupon):
    make_coupon(expiry_delta=timedelta(days=5))
    response = client.get(
        "/analytics/coupons",
        params={"end_date": "2020-01-01T00:00:00"},
        headers=auth(principals[Role.ANALYST]),
    )
    assert response.json()["total_coupons"] == 0
