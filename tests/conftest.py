"""Shared test fixtures for Tripsplit tests."""

import json
from collections.abc import Generator
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from tripsplit.models import Member, Payer, SplitType, Transaction
from tripsplit.service import TripService
from tripsplit.state import TripStore

OWNER = "owner-1"


@pytest.fixture
def roster() -> list[Member]:
    """Three members, all settled."""
    return [Member(name="Dan"), Member(name="Sara"), Member(name="Avi")]


@pytest.fixture
def beach_transactions() -> list[Transaction]:
    """Dan paid 300 for dinner, Sara paid 150 for gas, both split three ways."""
    return [
        Transaction(
            trip_id="t1",
            title="Dinner",
            payers=[Payer(name="Dan", amount=Decimal("300"))],
            participants=["Dan", "Sara", "Avi"],
            split_type=SplitType.EQUAL,
        ),
        Transaction(
            trip_id="t1",
            title="Gas",
            payers=[Payer(name="Sara", amount=Decimal("150"))],
            participants=["Dan", "Sara", "Avi"],
            split_type=SplitType.EQUAL,
        ),
    ]


@pytest.fixture
def store(tmp_path: Path) -> TripStore:
    """A TripStore in a temporary state directory."""
    return TripStore(tmp_path / "state")


@pytest.fixture
def service(store: TripStore) -> TripService:
    return TripService(store)


@pytest.fixture
def owner() -> str:
    return OWNER


def gemini_reply(text: str) -> dict[str, object]:
    """Shape of a generateContent response carrying `text`."""
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def mock_gemini() -> Generator[MagicMock, None, None]:
    """Mock the Gemini REST call to avoid network access."""
    with patch("tripsplit.receipts.requests.post") as mock_post:
        mock_response = MagicMock()
        mock_response.json.return_value = gemini_reply(
            json.dumps(
                {
                    "merchant": "Domino's",
                    "category": "Food",
                    "items": ["pizza", "garlic bread", "coke"],
                    "total": 1249,
                }
            )
        )
        mock_response.raise_for_status = MagicMock()
        mock_post.return_value = mock_response
        yield mock_post
