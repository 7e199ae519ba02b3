"""
HTTP tests for the suggestion API.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from ledgermatch.api import app, to_cents


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def smith_payload():
    return {
        "bank_entries": [
            {"id": "e1", "amount": "500.00", "statement_date": "2024-01-10", "description": "J Smith payment"},
            {"id": "e2", "amount": "0", "statement_date": "2024-01-10", "description": "Zero"},
        ],
        "loan_transactions": [
            {"id": "tx1", "loan_id": "L1", "type": "Repayment", "amount": "500.00", "date": "2024-01-10"},
        ],
        "loans": [{"id": "L1", "borrower_id": "B1", "loan_number": "LN-001"}],
        "borrowers": [{"id": "B1", "name": "J Smith"}],
    }


class TestHealth:
    """Service metadata endpoints."""

    def test_health(self, client):
        """Test the health endpoint reports a healthy service."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_matchers_listed_by_priority(self, client):
        """Test registered strategies are listed in priority order."""
        response = client.get("/api/matchers")
        assert response.status_code == 200
        body = response.json()
        assert list(body) == [
            "loan_repayment",
            "loan_disbursement",
            "investor_credit",
            "investor_withdrawal",
            "expense",
            "pattern",
        ]
        assert body["loan_repayment"] == {"priority": 90, "enabled": True}


class TestSuggestions:
    """POST /api/suggestions"""

    def test_exact_repayment(self, client, smith_payload):
        """Test an exact repayment comes back as a single match."""
        response = client.post("/api/suggestions", json=smith_payload)

        assert response.status_code == 200
        body = response.json()
        suggestion = body["suggestions"]["e1"]
        assert suggestion["type"] == "loan_repayment"
        assert suggestion["match_mode"] == "match"
        assert suggestion["referenced_record_ids"] == ["tx1"]
        assert suggestion["loan_id"] == "L1"
        assert suggestion["confidence"] == pytest.approx(0.99)

        summary = body["summary"]
        assert summary["total_entries"] == 2
        assert summary["skipped_entries"] == 1
        assert summary["suggested_entries"] == 1
        assert summary["by_matcher"] == {"loan_repayment": 1}

    def test_reconciled_record_excluded(self, client, smith_payload):
        """Test already reconciled records are never suggested."""
        smith_payload["reconciled_ids"] = ["tx1"]
        smith_payload["bank_entries"][0]["description"] = "Payment"

        body = client.post("/api/suggestions", json=smith_payload).json()

        assert body["suggestions"] == {}
        assert body["unmatched_entry_ids"] == ["e1"]

    def test_expense_keyword(self, client):
        """Test an expense-flavored debit is suggested as a new expense."""
        payload = {
            "bank_entries": [
                {"id": "e1", "amount": "-120.00", "statement_date": "2024-03-01",
                 "description": "Electricity Bill March"},
            ],
        }

        suggestion = client.post("/api/suggestions", json=payload).json()["suggestions"]["e1"]

        assert suggestion["type"] == "expense"
        assert suggestion["match_mode"] == "create"
        assert suggestion["confidence"] == pytest.approx(0.65)

    def test_invalid_body(self, client):
        """Test a request without bank entries is rejected."""
        response = client.post("/api/suggestions", json={"loans": []})
        assert response.status_code == 422

    def test_invalid_transaction_type(self, client, smith_payload):
        """Test an unknown loan transaction type is rejected."""
        smith_payload["loan_transactions"][0]["type"] = "Refund"
        response = client.post("/api/suggestions", json=smith_payload)
        assert response.status_code == 422


class TestToCents:
    """Decimal to cents conversion."""

    def test_rounds_half_up(self):
        """Test decimal amounts round half up to whole cents."""
        assert to_cents(Decimal("10.005")) == 1001
        assert to_cents(Decimal("-45.99")) == -4599
        assert to_cents(None) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
