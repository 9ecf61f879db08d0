"""Tests for Tripsplit models."""

from datetime import datetime
from decimal import Decimal

from tripsplit.models import (
    Member,
    Payer,
    ReceiptInfo,
    SettlementResult,
    SplitType,
    Transaction,
    Transfer,
    Trip,
    generate_slug,
)


class TestMember:
    """Tests for Member model."""

    def test_default_balance(self) -> None:
        assert Member(name="Dan").balance == Decimal("0")

    def test_coerces_float(self) -> None:
        """Floats go through str() so 0.1 stays 0.1."""
        member = Member(name="Dan", balance=0.1)  # type: ignore[arg-type]
        assert isinstance(member.balance, Decimal)
        assert member.balance == Decimal("0.1")

    def test_serialization(self) -> None:
        data = Member(name="Dan", balance=Decimal("-12.50")).model_dump()
        assert data["balance"] == "-12.50"


class TestTransaction:
    """Tests for Transaction model."""

    def test_total_is_derived_from_payers(self) -> None:
        txn = Transaction(
            trip_id="t1",
            title="Dinner",
            payers=[
                Payer(name="Dan", amount=Decimal("60")),
                Payer(name="Sara", amount=Decimal("40.5")),
            ],
            participants=["Dan", "Sara"],
        )
        assert txn.total_amount == Decimal("100.5")

    def test_total_in_dump(self) -> None:
        txn = Transaction(
            trip_id="t1",
            title="Dinner",
            payers=[Payer(name="Dan", amount=Decimal("10"))],
            participants=["Dan"],
        )
        data = txn.model_dump(mode="json")
        assert Decimal(data["total_amount"]) == Decimal("10")

    def test_supplied_total_is_ignored(self) -> None:
        """A stored/serialized total never overrides the payer sum."""
        txn = Transaction.model_validate(
            {
                "trip_id": "t1",
                "title": "Dinner",
                "payers": [{"name": "Dan", "amount": "10"}],
                "participants": ["Dan"],
                "total_amount": "999",
            }
        )
        assert txn.total_amount == Decimal("10")

    def test_defaults(self) -> None:
        txn = Transaction(trip_id="t1", title="x", payers=[])
        assert txn.split_type == SplitType.EQUAL
        assert txn.custom_amounts == []
        assert txn.participants == []
        assert isinstance(txn.created_at, datetime)
        assert txn.id

    def test_misaligned_custom_amounts_are_accepted(self) -> None:
        """Shape checks happen on input, stored data loads as-is."""
        txn = Transaction(
            trip_id="t1",
            title="Wine",
            payers=[Payer(name="Dan", amount=Decimal("30"))],
            participants=["Dan", "Sara"],
            split_type=SplitType.CUSTOM,
            custom_amounts=[10.5],  # type: ignore[list-item]
        )
        assert txn.custom_amounts == [Decimal("10.5")]

    def test_round_trip_json(self) -> None:
        txn = Transaction(
            trip_id="t1",
            title="Wine",
            payers=[Payer(name="Dan", amount=Decimal("30"))],
            participants=["Dan", "Sara"],
            split_type=SplitType.CUSTOM,
            custom_amounts=[Decimal("10"), Decimal("20")],
        )
        loaded = Transaction.model_validate(txn.model_dump(mode="json"))
        assert loaded == txn


class TestTrip:
    """Tests for Trip model."""

    def test_defaults(self) -> None:
        trip = Trip(owner_id="o", name="Beach")
        assert trip.members == []
        assert trip.is_closed is False
        assert trip.ended_at is None
        assert len(trip.public_slug) == 10

    def test_slugs_differ(self) -> None:
        assert Trip(owner_id="o", name="A").public_slug != Trip(owner_id="o", name="B").public_slug


def test_generate_slug_is_base36() -> None:
    slug = generate_slug()
    assert len(slug) == 10
    assert all(c in "0123456789abcdefghijklmnopqrstuvwxyz" for c in slug)


class TestTransfer:
    """Tests for Transfer model."""

    def test_populate_by_field_name(self) -> None:
        t = Transfer(from_person="B", to_person="A", amount=Decimal("50"))
        assert t.from_person == "B"
        assert t.to_person == "A"

    def test_populate_by_alias(self) -> None:
        t = Transfer.model_validate({"from": "B", "to": "A", "amount": 50})
        assert t.from_person == "B"
        assert t.amount == Decimal("50")

    def test_dump_by_alias(self) -> None:
        data = Transfer(from_person="B", to_person="A", amount=Decimal("50.00")).model_dump(
            by_alias=True
        )
        assert data == {"from": "B", "to": "A", "amount": "50.00"}


def test_settlement_result_default() -> None:
    result = SettlementResult()
    assert result.settlements == []
    assert result.algorithm == "none"


def test_receipt_info_total_coerced() -> None:
    info = ReceiptInfo(total=12.5)  # type: ignore[arg-type]
    assert info.total == Decimal("12.5")
    assert info.model_dump()["total"] == "12.5"
