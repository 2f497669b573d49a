"""
API tests for the mess manager service.

Exercise the full stack (routes → services → repositories → database)
with a frozen clock at 09:00 on 2026-03-15, before the 10:00 cutoff.
"""

import json
from decimal import Decimal

from tests.conftest import create_test_token

TODAY = "2026-03-15"

RICE = {"name": "Rice", "quantity": "10", "unit": "kg", "unit_price": "50.00"}


class TestServiceBasics:
    """Health and authentication"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_token(self, client):
        response = client.get("/api/messes")

        assert response.status_code in (401, 403)

    def test_expired_token(self, client):
        headers = {"Authorization": f"Bearer {create_test_token(expired=True)}"}

        response = client.get("/api/messes", headers=headers)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_first_call_creates_person(self, client, headers_for):
        response = client.get("/api/messes", headers=headers_for("brand-new"))

        assert response.status_code == 200
        assert response.json() == []


class TestMessEndpoints:
    """Tests for /api/messes"""

    def test_create_mess(self, client, auth_headers):
        response = client.post(
            "/api/messes",
            headers=auth_headers,
            json={"name": "Lake View", "breakfast_rate": "25.00", "lunch_rate": "45.00", "dinner_rate": "45.00"},
        )

        assert response.status_code == 201
        mess = response.json()
        assert mess["name"] == "Lake View"
        assert Decimal(mess["lunch_rate"]) == Decimal("45.00")
        assert mess["meal_cutoff_time"] == "10:00:00"

        listed = client.get("/api/messes", headers=auth_headers).json()
        assert [m["id"] for m in listed] == [mess["id"]]

        categories = client.get(f"/api/messes/{mess['id']}/expense-categories", headers=auth_headers)
        assert len(categories.json()) == 7

    def test_non_member_is_forbidden(self, client, mess, headers_for):
        response = client.get(f"/api/messes/{mess.id}", headers=headers_for("stranger"))

        assert response.status_code == 403

    def test_unknown_mess(self, client, auth_headers):
        response = client.get("/api/messes/9999", headers=auth_headers)

        assert response.status_code == 404

    def test_rates(self, client, mess, auth_headers):
        response = client.get(f"/api/messes/{mess.id}/rates", headers=auth_headers)

        assert response.status_code == 200
        assert Decimal(response.json()["total_daily"]) == Decimal("130.00")


class TestMealEndpoints:
    """Tests for /api/messes/{mess_id}/meals"""

    def test_record_and_duplicate(self, client, mess, auth_headers):
        url = f"/api/messes/{mess.id}/meals"
        body = {"meal_date": TODAY, "breakfast": 1, "lunch": 1, "dinner": 1}

        first = client.post(url, headers=auth_headers, json=body)
        second = client.post(url, headers=auth_headers, json=body)

        assert first.status_code == 201
        assert first.json()["locked_at"] is None
        assert second.status_code == 409

    def test_lock_before_cutoff_needs_force(self, client, mess, auth_headers):
        url = f"/api/messes/{mess.id}/meals"
        client.post(url, headers=auth_headers, json={"meal_date": TODAY, "lunch": 1})

        early = client.post(f"{url}/lock", headers=auth_headers, json={"meal_date": TODAY})
        forced = client.post(f"{url}/lock", headers=auth_headers, json={"meal_date": TODAY, "force": True})

        assert early.status_code == 409
        assert forced.status_code == 200
        assert forced.json() == {"meal_date": TODAY, "locked_count": 1}

    def test_window(self, client, mess, auth_headers):
        response = client.get(
            f"/api/messes/{mess.id}/meals/window", headers=auth_headers, params={"meal_date": TODAY}
        )

        assert response.json() == {"meal_date": TODAY, "open": True}

    def test_invalid_counts_rejected(self, client, mess, auth_headers):
        response = client.post(
            f"/api/messes/{mess.id}/meals", headers=auth_headers, json={"meal_date": TODAY, "lunch": -1}
        )

        assert response.status_code == 422


class TestBazarEndpoints:
    """Tests for /api/messes/{mess_id}/bazar"""

    def test_cost_mismatch(self, client, mess, auth_headers):
        response = client.post(
            f"/api/messes/{mess.id}/bazar",
            headers=auth_headers,
            json={"bazar_date": TODAY, "items": [RICE], "total_cost": "501.00"},
        )

        assert response.status_code == 422
        body = response.json()
        assert Decimal(body["computed"]) == Decimal("500.00")
        assert Decimal(body["provided"]) == Decimal("501.00")

    def test_next_assignee(self, client, mess, manager_context, auth_headers):
        response = client.get(f"/api/messes/{mess.id}/bazar/next-assignee", headers=auth_headers)

        assert response.json() == {
            "member_id": manager_context.member.id,
            "person_id": manager_context.person.id,
        }

    def test_approved_record_is_immutable_for_members(
        self, client, mess, make_member, headers_for, auth_headers
    ):
        make_member("member-1")
        member_headers = headers_for("member-1")
        created = client.post(
            f"/api/messes/{mess.id}/bazar",
            headers=member_headers,
            json={"bazar_date": TODAY, "items": [RICE], "total_cost": "500.00"},
        ).json()
        approved = client.post(f"/api/messes/{mess.id}/bazar/{created['id']}/approve", headers=auth_headers)

        response = client.patch(
            f"/api/messes/{mess.id}/bazar/{created['id']}", headers=member_headers, json={"notes": "late"}
        )

        assert approved.json()["status"] == "approved"
        assert response.status_code == 409


class TestStatementEndpoints:
    """Tests for statements and reports over HTTP"""

    def test_monthly_statement(self, client, mess, manager_context, auth_headers):
        base = f"/api/messes/{mess.id}"
        member_id = manager_context.member.id
        client.post(
            f"{base}/meals", headers=auth_headers, json={"meal_date": TODAY, "breakfast": 1, "lunch": 1, "dinner": 1}
        )
        bazar = client.post(
            f"{base}/bazar",
            headers=auth_headers,
            json={"bazar_date": TODAY, "items": [RICE], "total_cost": "500.00"},
        ).json()
        client.post(f"{base}/bazar/{bazar['id']}/approve", headers=auth_headers)
        category = client.get(f"{base}/expense-categories", headers=auth_headers).json()[0]
        expense = client.post(
            f"{base}/expenses",
            headers=auth_headers,
            json={"category_id": category["id"], "amount": "200.00", "expense_date": TODAY},
        ).json()
        client.post(f"{base}/expenses/{expense['id']}/approve", headers=auth_headers)
        payment = client.post(
            f"{base}/payments",
            headers=auth_headers,
            json={"amount": "600.00", "payment_date": TODAY, "method": "bkash"},
        ).json()
        client.post(f"{base}/payments/{payment['id']}/complete", headers=auth_headers)

        response = client.get(
            f"{base}/reports/statements/{member_id}", headers=auth_headers, params={"year": 2026, "month": 3}
        )

        assert response.status_code == 200
        statement = response.json()
        assert Decimal(statement["meal_cost"]) == Decimal("130.00")
        assert Decimal(statement["due_amount"]) == Decimal("230.00")
        assert Decimal(statement["total_cost"]) == Decimal("830.00")

    def test_member_cannot_read_reports(self, client, mess, make_member, headers_for):
        make_member("member-1")

        response = client.get(f"/api/messes/{mess.id}/reports/trend", headers=headers_for("member-1"))

        assert response.status_code == 403

    def test_trend(self, client, mess, auth_headers):
        response = client.get(f"/api/messes/{mess.id}/reports/trend", headers=auth_headers)

        assert response.status_code == 200
        assert [point["label"] for point in response.json()][-1] == "Mar 2026"
        assert len(response.json()) == 6


class TestPaymentEndpoints:
    """Tests for pending listing and bulk approval over HTTP"""

    def test_pending_then_bulk_approve(self, client, mess, auth_headers):
        base = f"/api/messes/{mess.id}/payments"
        ids = [
            client.post(
                base, headers=auth_headers, json={"amount": amount, "payment_date": day, "method": "cash"}
            ).json()["id"]
            for amount, day in [("100.00", "2026-03-01"), ("250.00", "2026-03-02")]
        ]

        pending = client.get(f"{base}/pending", headers=auth_headers)
        assert pending.status_code == 200
        assert pending.json()["total_count"] == 2
        assert Decimal(pending.json()["total_amount"]) == Decimal("350.00")

        response = client.post(f"{base}/bulk-approve", headers=auth_headers, json={"payment_ids": ids})

        assert response.status_code == 200
        assert response.json()["approved_count"] == 2
        assert client.get(f"{base}/pending", headers=auth_headers).json()["total_count"] == 0

    def test_bulk_approve_requires_ids(self, client, mess, auth_headers):
        response = client.post(
            f"/api/messes/{mess.id}/payments/bulk-approve", headers=auth_headers, json={"payment_ids": []}
        )

        assert response.status_code == 422


class TestAttendanceEndpoints:
    """Tests for token issue, validation and scanning"""

    def issue(self, client, mess, headers, **fields):
        body = {"purpose": "meal_attendance", "meal_date": TODAY, "meal_type": "lunch", **fields}
        return client.post(f"/api/messes/{mess.id}/attendance/tokens", headers=headers, json=body)

    def test_issue_validate_scan(self, client, mess, manager_context, auth_headers):
        issued = self.issue(client, mess, auth_headers, max_usage=2)
        qr_content = issued.json()["qr_content"]
        base = f"/api/messes/{mess.id}/attendance"

        validated = client.post(f"{base}/tokens/validate", headers=auth_headers, json={"qr_content": qr_content})
        scanned = client.post(f"{base}/scan", headers=auth_headers, json={"qr_content": qr_content})
        rescanned = client.post(f"{base}/scan", headers=auth_headers, json={"qr_content": qr_content})

        assert issued.status_code == 201
        assert validated.status_code == 200
        assert validated.json()["member_id"] == manager_context.member.id
        assert scanned.status_code == 201
        assert scanned.json()["status"] == "pending"
        assert rescanned.status_code == 409

    def test_tampered_token(self, client, mess, auth_headers):
        claims = json.loads(self.issue(client, mess, auth_headers).json()["qr_content"])
        claims["purpose"] = "mess_access"

        response = client.post(
            f"/api/messes/{mess.id}/attendance/tokens/validate",
            headers=auth_headers,
            json={"qr_content": json.dumps(claims)},
        )

        assert response.status_code == 400

    def test_meal_token_requires_meal(self, client, mess, auth_headers):
        response = client.post(
            f"/api/messes/{mess.id}/attendance/tokens",
            headers=auth_headers,
            json={"purpose": "meal_attendance"},
        )

        assert response.status_code == 422

    def test_revoked_token_is_gone(self, client, mess, auth_headers):
        token = self.issue(client, mess, auth_headers).json()
        base = f"/api/messes/{mess.id}/attendance"

        client.post(f"{base}/tokens/{token['id']}/revoke", headers=auth_headers)
        response = client.post(f"{base}/tokens/validate", headers=auth_headers, json={"qr_content": token["qr_content"]})

        assert response.status_code == 410
