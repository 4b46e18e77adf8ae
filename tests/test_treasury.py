"""
Tests for treasury endpoints: cash-in, registration and transaction lookup.
"""

import uuid

from sqlalchemy import select

from nucash.models.account import Account
from nucash.security import verify_pin


class TestCashIn:
    """Loading money onto a card."""

    async def test_cash_in_credits_balance(self, client, make_account, notifier):
        account = await make_account()

        response = await client.post(
            "/treasury/cash-in",
            json={"account_id": account["id"], "amount_cents": 5000, "admin_id": "TREAS-1"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["previous_balance_cents"] == 0
        assert body["new_balance_cents"] == 5000
        assert body["transaction_id"].startswith("TXN-")

        txn = (await client.get(f"/treasury/transactions/{body['transaction_id']}")).json()
        assert txn["transaction_type"] == "credit"
        assert txn["amount_cents"] == 5000
        assert txn["balance_cents"] == 5000
        assert txn["admin_id"] == "TREAS-1"

        receipts = notifier.of_kind("cash_in")
        assert len(receipts) == 1
        assert receipts[0][0].amount_cents == 5000

    async def test_cash_in_by_rfid_and_school_uid(self, client, student):
        by_rfid = await client.post(
            "/treasury/cash-in",
            json={"rfid_uid": student["rfid_uid"], "amount_cents": 1000},
        )
        by_school = await client.post(
            "/treasury/cash-in",
            json={"school_uid": student["school_uid"], "amount_cents": 1000},
        )
        assert by_rfid.json()["new_balance_cents"] == 3000
        assert by_school.json()["new_balance_cents"] == 4000

    async def test_amount_below_minimum(self, client, student):
        response = await client.post(
            "/treasury/cash-in",
            json={"account_id": student["id"], "amount_cents": 999},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error_type"] == "invalid_amount"
        assert body["min_cents"] == 1000
        assert body["max_cents"] == 1_000_000

    async def test_amount_above_maximum(self, client, student):
        response = await client.post(
            "/treasury/cash-in",
            json={"account_id": student["id"], "amount_cents": 1_000_001},
        )
        assert response.status_code == 400
        balance = (await client.get(f"/accounts/{student['id']}/balance")).json()
        assert balance["balance_cents"] == 2000

    async def test_inactive_account_is_forbidden(self, client, make_account):
        account = await make_account(active=False)
        response = await client.post(
            "/treasury/cash-in",
            json={"account_id": account["id"], "amount_cents": 5000},
        )
        assert response.status_code == 403
        ledger = (await client.get(f"/accounts/{account['id']}/transactions")).json()
        assert ledger == []

    async def test_unknown_account(self, client):
        response = await client.post(
            "/treasury/cash-in",
            json={"account_id": str(uuid.uuid4()), "amount_cents": 5000},
        )
        assert response.status_code == 404

    async def test_exactly_one_reference_required(self, client, student):
        response = await client.post(
            "/treasury/cash-in",
            json={
                "account_id": student["id"],
                "rfid_uid": student["rfid_uid"],
                "amount_cents": 5000,
            },
        )
        assert response.status_code == 422

        response = await client.post("/treasury/cash-in", json={"amount_cents": 5000})
        assert response.status_code == 422


class TestRegistration:
    """Registering card holders."""

    async def test_register_creates_inactive_account(self, client, db_session, notifier):
        response = await client.post(
            "/treasury/register",
            json={
                "school_uid": "2024123456",
                "rfid_uid": "04A1B2C3",
                "first_name": "  Maria ",
                "middle_name": "Santos",
                "last_name": "Reyes",
                "email": "Maria.Reyes@Students.NU.edu.ph",
                "pin": "246810",
            },
        )
        assert response.status_code == 201
        body = response.json()
        assert body["is_active"] is False
        assert body["balance_cents"] == 0
        assert body["first_name"] == "Maria"
        assert body["email"] == "maria.reyes@students.nu.edu.ph"
        assert body["role"] == "student"
        assert "pin_hash" not in body

        account = (
            await db_session.execute(select(Account).where(Account.id == uuid.UUID(body["id"])))
        ).scalar_one()
        assert account.pin_hash != "246810"
        assert verify_pin("246810", account.pin_hash)

        sent = notifier.of_kind("temporary_pin")
        assert sent == [
            ("maria.reyes@students.nu.edu.ph", "246810", "Maria Santos Reyes", "2024123456")
        ]

    async def test_duplicate_rfid(self, client, student):
        response = await client.post(
            "/treasury/register",
            json={
                "school_uid": "2099000001",
                "rfid_uid": student["rfid_uid"],
                "first_name": "Other",
                "last_name": "Person",
                "email": "other@students.nu.edu.ph",
                "pin": "123456",
            },
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate_rfid"

    async def test_duplicate_school_uid(self, client, student):
        response = await client.post(
            "/treasury/register",
            json={
                "school_uid": student["school_uid"],
                "rfid_uid": "NEWCARD1",
                "first_name": "Other",
                "last_name": "Person",
                "email": "other@students.nu.edu.ph",
                "pin": "123456",
            },
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate_school_id"

    async def test_duplicate_email_is_case_insensitive(self, client, student):
        response = await client.post(
            "/treasury/register",
            json={
                "school_uid": "2099000002",
                "rfid_uid": "NEWCARD2",
                "first_name": "Other",
                "last_name": "Person",
                "email": student["email"].upper(),
                "pin": "123456",
            },
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate_email"

    async def test_pin_must_be_six_digits(self, client):
        response = await client.post(
            "/treasury/register",
            json={
                "school_uid": "2099000003",
                "rfid_uid": "NEWCARD3",
                "first_name": "Other",
                "last_name": "Person",
                "email": "short@students.nu.edu.ph",
                "pin": "12ab",
            },
        )
        assert response.status_code == 422


class TestTransactionLookup:
    async def test_unknown_transaction(self, client):
        response = await client.get("/treasury/transactions/TXN-NOPE")
        assert response.status_code == 404
        assert response.json()["error_type"] == "transaction_not_found"
