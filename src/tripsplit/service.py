"""Trip workflows - ownership checks, closed-trip policy and balance recomputation.

Every transaction write is followed by a full recomputation of the trip's
balances before returning. A failed recomputation fails the whole call.
Settlements are only released for closed trips.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from . import ledger
from .errors import (
    ConflictError,
    InvalidInputError,
    NotAllowedError,
    NotFoundError,
    TripNotClosedError,
)
from .models import Member, SettlementResult, Transaction, Trip
from .settlement import compute_settlement
from .state import TripStore

logger = logging.getLogger(__name__)


class TripService:
    """
    Owner-scoped operations on trips and their transactions.

    Owner ids are opaque strings; a trip is visible to the caller whose id
    equals the trip's owner_id.
    """

    def __init__(self, store: TripStore):
        self.store = store

    # === Trips ===

    def _owned_trip(self, trip_id: str, owner_id: str) -> Trip:
        trip = self.store.get_trip(trip_id)
        if trip is None or trip.owner_id != owner_id:
            raise NotFoundError("Trip not found")
        return trip

    def _public_trip(self, slug: str) -> Trip:
        trip = self.store.find_trip_by_slug(slug)
        if trip is None:
            raise NotFoundError("Trip not found")
        return trip

    @staticmethod
    def _require_open(trip: Trip) -> None:
        if trip.is_closed:
            raise ConflictError("Trip is closed")

    def create_trip(self, owner_id: str, name: Any, member_names: Iterable[Any] = ()) -> Trip:
        """
        Create a trip with an optional initial roster.

        Blank member names are dropped, as are repeats of a name already
        listed (compared case-insensitively).
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError("Trip name is required")

        members: list[Member] = []
        seen: set[str] = set()
        for raw in member_names:
            if not isinstance(raw, str) or not raw.strip():
                continue
            key = ledger.name_key(raw)
            if key in seen:
                continue
            seen.add(key)
            members.append(Member(name=raw.strip()))

        trip = self.store.create_trip(owner_id, name.strip(), members)
        logger.info("Created trip %s (%s) with %d members", trip.id, trip.name, len(members))
        return trip

    def list_trips(self, owner_id: str) -> list[Trip]:
        return self.store.list_trips(owner_id)

    def get_trip(self, trip_id: str, owner_id: str) -> Trip:
        return self._owned_trip(trip_id, owner_id)

    def get_public_trip(self, slug: str) -> Trip:
        return self._public_trip(slug)

    def add_member(self, trip_id: str, owner_id: str, name: Any) -> Trip:
        """Add a member to an open trip. Names are unique case-insensitively."""
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError("Member name is required")

        trip = self._owned_trip(trip_id, owner_id)
        self._require_open(trip)

        key = ledger.name_key(name)
        if any(ledger.name_key(m.name) == key for m in trip.members):
            raise ConflictError("Member with this name already exists")

        trip.members.append(Member(name=name.strip()))
        self.store.save_trip(trip)
        logger.info("Added member %s to trip %s", name.strip(), trip_id)
        return trip

    def delete_trip(self, trip_id: str, owner_id: str) -> None:
        self._owned_trip(trip_id, owner_id)
        self.store.delete_trip(trip_id)
        logger.info("Deleted trip %s", trip_id)

    def close_trip(self, trip_id: str, owner_id: str) -> Trip:
        """End a trip: lock edits and release the settlement. Idempotent."""
        trip = self._owned_trip(trip_id, owner_id)
        if trip.is_closed:
            return trip
        trip.is_closed = True
        trip.ended_at = datetime.now()
        self.store.save_trip(trip)
        logger.info("Closed trip %s", trip_id)
        return trip

    def reopen_trip(self, trip_id: str, owner_id: str) -> Trip:
        """Reopen a closed trip: hide the settlement, allow edits again. Idempotent."""
        trip = self._owned_trip(trip_id, owner_id)
        if not trip.is_closed:
            return trip
        trip.is_closed = False
        trip.ended_at = None
        self.store.save_trip(trip)
        logger.info("Reopened trip %s", trip_id)
        return trip

    # === Transactions ===

    def list_transactions(self, trip_id: str, owner_id: str) -> list[Transaction]:
        self._owned_trip(trip_id, owner_id)
        return self.store.load_transactions(trip_id)

    def list_public_transactions(self, slug: str) -> list[Transaction]:
        trip = self._public_trip(slug)
        return self.store.load_transactions(trip.id)

    def _editable_transaction(
        self, transaction_id: str, owner_id: str
    ) -> tuple[Transaction, Trip]:
        txn = self.store.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError("Transaction not found")

        trip = self.store.get_trip(txn.trip_id)
        if trip is None or trip.owner_id != owner_id:
            raise NotAllowedError("Not allowed")
        self._require_open(trip)
        return txn, trip

    def create_transaction(
        self,
        trip_id: str,
        owner_id: str,
        title: Any,
        payers: Any,
        participants: Any,
        split_type: Any,
        custom_amounts: Any = None,
    ) -> Transaction:
        """
        Record an expense on an open trip and recompute its balances.

        Args:
            trip_id: Trip to add to
            owner_id: Caller identity
            title: What the expense was for
            payers: [{"name": ..., "amount": ...}, ...]
            participants: Names sharing the cost
            split_type: "equal" or "custom"
            custom_amounts: Per-participant amounts, parallel to participants
                (custom splits only)

        Returns:
            The stored transaction
        """
        trip = self._owned_trip(trip_id, owner_id)
        self._require_open(trip)

        clean_title = ledger.normalize_title(title)
        clean_payers = ledger.normalize_payers(payers)
        clean_participants = ledger.normalize_participants(participants)
        clean_split = ledger.normalize_split_type(split_type)
        amounts = ledger.normalize_custom_amounts(
            clean_split,
            clean_participants,
            custom_amounts if custom_amounts is not None else [],
            ledger.total_paid(clean_payers),
        )

        txn = Transaction(
            trip_id=trip_id,
            title=clean_title,
            payers=clean_payers,
            participants=clean_participants,
            split_type=clean_split,
            custom_amounts=amounts,
        )
        self.store.save_transaction(txn)
        logger.info("Created transaction %s on trip %s (%s)", txn.id, trip_id, txn.total_amount)

        self.recompute_trip_balances(trip_id)
        return txn

    def update_transaction(
        self,
        transaction_id: str,
        owner_id: str,
        *,
        title: Any = None,
        payers: Any = None,
        participants: Any = None,
        split_type: Any = None,
        custom_amounts: Any = None,
    ) -> Transaction:
        """
        Patch a transaction; fields left as None keep their current value.

        A custom split reuses its stored amounts unless new ones are given;
        switching to an equal split clears them. The total is re-derived.
        """
        txn, trip = self._editable_transaction(transaction_id, owner_id)

        if title is not None:
            txn.title = ledger.normalize_title(title)
        if payers is not None:
            txn.payers = ledger.normalize_payers(payers)
        if participants is not None:
            txn.participants = ledger.normalize_participants(participants)
        if split_type is not None:
            txn.split_type = ledger.normalize_split_type(split_type)

        amounts = custom_amounts if custom_amounts is not None else txn.custom_amounts
        txn.custom_amounts = ledger.normalize_custom_amounts(
            txn.split_type,
            txn.participants,
            amounts if amounts is not None else [],
            ledger.total_paid(txn.payers),
        )
        txn.updated_at = datetime.now()

        self.store.save_transaction(txn)
        logger.info("Updated transaction %s on trip %s", txn.id, trip.id)

        self.recompute_trip_balances(trip.id)
        return txn

    def delete_transaction(self, transaction_id: str, owner_id: str) -> list[Member]:
        """Delete a transaction; returns the trip's recomputed roster."""
        txn, trip = self._editable_transaction(transaction_id, owner_id)
        self.store.delete_transaction(txn.id)
        logger.info("Deleted transaction %s from trip %s", txn.id, trip.id)

        return self.recompute_trip_balances(trip.id)

    # === Balances & settlement ===

    def recompute_trip_balances(self, trip_id: str) -> list[Member]:
        """
        Rebuild a trip's balances from all of its transactions and store them.

        Raises:
            NotFoundError: If the trip doesn't exist
        """
        members = self.store.load_trip_members(trip_id)
        transactions = self.store.load_transactions(trip_id)
        updated = ledger.recompute_balances(members, transactions)
        self.store.save_trip_members(trip_id, updated)
        logger.debug(
            "Recomputed balances for trip %s from %d transactions", trip_id, len(transactions)
        )
        return updated

    def compute_trip_settlement(self, trip_id: str) -> SettlementResult:
        """Settlement over the stored balances, regardless of the trip state."""
        return compute_settlement(self.store.load_trip_members(trip_id))

    def _released_settlement(self, trip: Trip) -> SettlementResult:
        if not trip.is_closed:
            raise TripNotClosedError()
        return compute_settlement(trip.members)

    def get_settlement(self, trip_id: str, owner_id: str) -> SettlementResult:
        """
        Settlement for a closed trip.

        Raises:
            TripNotClosedError: If the trip is still open
        """
        return self._released_settlement(self._owned_trip(trip_id, owner_id))

    def get_public_settlement(self, slug: str) -> SettlementResult:
        return self._released_settlement(self._public_trip(slug))

