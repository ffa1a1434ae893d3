"""
Tests for expense endpoints.
"""
import pytest
from decimal import Decimal
from settleup.models import Expense
from settleup.services.balance_service import ExpenseValidationError
from settleup.services.expense_service import split_evenly


def ids(trip):
    return [p.id for p in trip.participants]


def test_split_evenly_distributes_leftover_cents():
    assert split_evenly(Decimal("100.00"), [1, 2, 3]) == [
        (1, Decimal("33.34")),
        (2, Decimal("33.33")),
        (3, Decimal("33.33")),
    ]
    assert split_evenly(Decimal("0.05"), [1, 2]) == [(1, Decimal("0.03")), (2, Decimal("0.02"))]


def test_split_evenly_needs_participants():
    with pytest.raises(ExpenseValidationError):
        split_evenly(Decimal("10"), [])


def test_create_expense_with_equal_split(client, trip):
    alice, bob, carol = ids(trip)
    response = client.post(
        f"/api/expenses/{trip.id}",
        json={
            "expense_name": "Dinner at Cervejaria",
            "amount": "100.00",
            "payer_ids": [alice],
            "split_participant_ids": [alice, bob, carol]
        }
    )
    assert response.status_code == 201
    data = response.json()
    assert data["currency"] == "USD"
    assert Decimal(data["conversion_rate"]) == 1
    assert data["category"] == "Food"
    assert data["is_settlement"] is False
    assert [Decimal(s["share_amount"]) for s in data["splits"]] == [
        Decimal("33.34"), Decimal("33.33"), Decimal("33.33")
    ]


def test_create_expense_captures_current_rate(client, trip, db):
    alice, bob, _ = ids(trip)
    response = client.post(
        f"/api/expenses/{trip.id}",
        json={
            "expense_name": "Hotel",
            "amount": "90",
            "currency": "eur",
            "category": "Accommodation",
            "payers": [{"participant_id": alice, "amount_paid": "90"}],
            "splits": [
                {"participant_id": alice, "share_amount": "30"},
                {"participant_id": bob, "share_amount": "60"}
            ]
        }
    )
    assert response.status_code == 201
    data = response.json()
    assert data["currency"] == "EUR"
    assert Decimal(data["conversion_rate"]) == Decimal("0.9")

    # A later rate change does not touch the stored expense
    client.put(f"/api/fx-rates/{trip.id}/EUR", json={"rate": "0.5"})
    expense = db.query(Expense).filter(Expense.id == data["id"]).first()
    db.refresh(expense)
    assert expense.conversion_rate == Decimal("0.9")


def test_unbalanced_expense_is_rejected(client, trip, db):
    alice, bob, _ = ids(trip)
    response = client.post(
        f"/api/expenses/{trip.id}",
        json={
            "expense_name": "Groceries",
            "amount": "100.00",
            "payers": [{"participant_id": alice, "amount_paid": "99.99"}],
            "split_participant_ids": [alice, bob]
        }
    )
    assert response.status_code == 422
    assert "payers sum" in response.json()["detail"]
    assert db.query(Expense).count() == 0


def test_expense_without_splits_is_rejected(client, trip):
    alice, _, _ = ids(trip)
    response = client.post(
        f"/api/expenses/{trip.id}",
        json={"expense_name": "Taxi", "amount": "20", "payer_ids": [alice]}
    )
    assert response.status_code == 422


def test_expense_with_outside_participant_is_rejected(client, trip):
    alice, _, _ = ids(trip)
    response = client.post(
        f"/api/expenses/{trip.id}",
        json={
            "expense_name": "Taxi",
            "amount": "20",
            "payer_ids": [alice],
            "split_participant_ids": [alice, 999]
        }
    )
    assert response.status_code == 422
    assert "999" in response.json()["detail"]


def test_expense_in_unknown_currency_is_rejected(client, trip):
    alice, bob, _ = ids(trip)
    response = client.post(
        f"/api/expenses/{trip.id}",
        json={
            "expense_name": "Boat tour",
            "amount": "40",
            "currency": "GBP",
            "payer_ids": [alice],
            "split_participant_ids": [alice, bob]
        }
    )
    assert response.status_code == 400
    assert "GBP" in response.json()["detail"]


def test_list_and_delete_expenses(client, trip):
    alice, bob, _ = ids(trip)
    created = client.post(
        f"/api/expenses/{trip.id}",
        json={"expense_name": "Metro", "amount": "6", "payer_ids": [bob], "split_participant_ids": [alice, bob]}
    ).json()

    listed = client.get(f"/api/expenses/{trip.id}")
    assert listed.status_code == 200
    assert [e["id"] for e in listed.json()] == [created["id"]]

    response = client.delete(f"/api/expenses/{trip.id}/{created['id']}")
    assert response.status_code == 200
    assert client.get(f"/api/expenses/{trip.id}").json() == []

    response = client.delete(f"/api/expenses/{trip.id}/{created['id']}")
    assert response.status_code == 404


def test_unknown_trip_returns_404(client, db):
    assert client.get("/api/expenses/12345").status_code == 404


def test_category_summary_ignores_settlements(client, trip):
    alice, bob, carol = ids(trip)
    client.post(
        f"/api/expenses/{trip.id}",
        json={"expense_name": "Lunch", "amount": "60", "payer_ids": [alice], "split_participant_ids": [alice, bob, carol]}
    )
    client.post(
        f"/api/expenses/{trip.id}",
        json={"expense_name": "Train to Sintra", "amount": "27", "currency": "EUR",
              "payer_ids": [bob], "split_participant_ids": [bob, carol]}
    )
    client.post(
        f"/api/settlement/{trip.id}/record",
        json={"from_participant_id": carol, "to_participant_id": alice, "amount": "20"}
    )

    response = client.get(f"/api/expenses/{trip.id}/summary/categories")
    assert response.status_code == 200
    data = response.json()
    assert data["base_currency"] == "USD"
    assert Decimal(data["total_expenses_base"]) == Decimal(90)
    assert {c["category"]: Decimal(c["total_amount_base"]) for c in data["categories"]} == {
        "Commute": Decimal(30),
        "Food": Decimal(60),
    }
    assert {s["name"]: Decimal(s["share_base"]) for s in data["participant_shares"]} == {
        "Alice": Decimal(20),
        "Bob": Decimal(35),
        "Carol": Decimal(35),
    }


def test_sub_cent_payer_amount_is_rejected(client, trip, db):
    alice, bob, _ = ids(trip)
    response = client.post(
        f"/api/expenses/{trip.id}",
        json={
            "expense_name": "Groceries",
            "amount": "100.00",
            "payers": [{"participant_id": alice, "amount_paid": "99.999999"}],
            "split_participant_ids": [alice, bob]
        }
    )
    assert response.status_code == 422
    assert "whole cents" in response.json()["detail"]
    assert db.query(Expense).count() == 0


def test_sub_cent_shares_are_rejected_not_rounded(client, trip, db):
    alice, bob, carol = ids(trip)
    response = client.post(
        f"/api/expenses/{trip.id}",
        json={
            "expense_name": "Boat rental",
            "amount": "100.00",
            "payer_ids": [alice],
            "splits": [
                {"participant_id": alice, "share_amount": "33.335"},
                {"participant_id": bob, "share_amount": "33.335"},
                {"participant_id": carol, "share_amount": "33.33"}
            ]
        }
    )
    assert response.status_code == 422
    assert "33.335" in response.json()["detail"]
    assert db.query(Expense).count() == 0


def test_expense_in_disabled_currency_is_rejected(client, trip, db):
    alice, bob, _ = ids(trip)
    client.put(f"/api/fx-rates/{trip.id}/EUR", json={"rate": "0.9", "is_enabled": False})

    response = client.post(
        f"/api/expenses/{trip.id}",
        json={"expense_name": "Tram", "amount": "3", "currency": "EUR",
              "payer_ids": [alice], "split_participant_ids": [alice, bob]}
    )
    assert response.status_code == 400
    assert "disabled" in response.json()["detail"]
    assert db.query(Expense).count() == 0

    # The base currency is always accepted
    response = client.post(
        f"/api/expenses/{trip.id}",
        json={"expense_name": "Tram", "amount": "3",
              "payer_ids": [alice], "split_participant_ids": [alice, bob]}
    )
    assert response.status_code == 201
