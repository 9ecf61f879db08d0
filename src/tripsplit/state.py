"""Trip state management - load/save trips and transactions."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .config import get_state_dir
from .errors import NotFoundError
from .models import Member, Transaction, Trip, generate_slug

logger = logging.getLogger(__name__)


class TripStore:
    """
    Persists trips and their transactions.

    Trips are stored in <state_dir>/trips.json
    Transactions are stored in <state_dir>/transactions.json

    Each save replaces a whole file atomically. A store is meant to have a
    single writer; balance recomputation for a trip must not interleave with
    other writes to the same trip.
    """

    def __init__(self, state_dir: str | Path | None = None):
        """
        Initialize TripStore.

        Args:
            state_dir: Directory for state files (default: ~/.tripsplit or
                TRIPSPLIT_STATE_DIR)
        """
        if state_dir is None:
            state_dir = get_state_dir()
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)

        self.trips_file = self.state_dir / "trips.json"
        self.transactions_file = self.state_dir / "transactions.json"

        self._trips: dict[str, Trip] = {}
        self._transactions: dict[str, Transaction] = {}

        self._load()

    def _read_json(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _load(self) -> None:
        """Load state from disk. Entries that fail validation are skipped."""
        self._trips = {}
        for trip_id, raw in self._read_json(self.trips_file).items():
            try:
                self._trips[trip_id] = Trip.model_validate(raw)
            except ValueError as e:
                logger.warning("Skipping invalid trip %s: %s", trip_id, e)

        self._transactions = {}
        for txn_id, raw in self._read_json(self.transactions_file).items():
            try:
                self._transactions[txn_id] = Transaction.model_validate(raw)
            except ValueError as e:
                logger.warning("Skipping invalid transaction %s: %s", txn_id, e)

    def _write_json(self, path: Path, data: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.state_dir, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _save_trips(self) -> None:
        self._write_json(
            self.trips_file,
            {trip_id: trip.model_dump(mode="json") for trip_id, trip in self._trips.items()},
        )

    def _save_transactions(self) -> None:
        self._write_json(
            self.transactions_file,
            {txn_id: txn.model_dump(mode="json") for txn_id, txn in self._transactions.items()},
        )

    # === Trips ===

    def create_trip(self, owner_id: str, name: str, members: list[Member] | None = None) -> Trip:
        """Create a new trip."""
        trip = Trip(owner_id=owner_id, name=name, members=members or [])
        while self.find_trip_by_slug(trip.public_slug) is not None:
            trip.public_slug = generate_slug()
        self._trips[trip.id] = trip
        self._save_trips()
        return trip.model_copy(deep=True)

    def get_trip(self, trip_id: str) -> Trip | None:
        """Get a trip by id."""
        trip = self._trips.get(trip_id)
        return trip.model_copy(deep=True) if trip else None

    def find_trip_by_slug(self, slug: str) -> Trip | None:
        """Get a trip by its public slug."""
        for trip in self._trips.values():
            if trip.public_slug == slug:
                return trip.model_copy(deep=True)
        return None

    def list_trips(self, owner_id: str) -> list[Trip]:
        """List an owner's trips, newest first."""
        trips = [t for t in self._trips.values() if t.owner_id == owner_id]
        trips.sort(key=lambda t: t.created_at, reverse=True)
        return [t.model_copy(deep=True) for t in trips]

    def save_trip(self, trip: Trip) -> None:
        """Save/update a trip."""
        self._trips[trip.id] = trip.model_copy(deep=True)
        self._save_trips()

    def delete_trip(self, trip_id: str) -> bool:
        """Delete a trip and its transactions. Returns True if deleted."""
        if trip_id not in self._trips:
            return False
        del self._trips[trip_id]
        self._save_trips()

        orphaned = [k for k, txn in self._transactions.items() if txn.trip_id == trip_id]
        if orphaned:
            for txn_id in orphaned:
                del self._transactions[txn_id]
            self._save_transactions()
        return True

    # === Members ===

    def load_trip_members(self, trip_id: str) -> list[Member]:
        """
        Load a trip's roster.

        Raises:
            NotFoundError: If the trip doesn't exist
        """
        trip = self._trips.get(trip_id)
        if trip is None:
            raise NotFoundError("Trip not found")
        return [m.model_copy() for m in trip.members]

    def save_trip_members(self, trip_id: str, members: list[Member]) -> None:
        """
        Replace a trip's roster.

        Raises:
            NotFoundError: If the trip doesn't exist
        """
        trip = self._trips.get(trip_id)
        if trip is None:
            raise NotFoundError("Trip not found")
        trip.members = [m.model_copy() for m in members]
        self._save_trips()

    # === Transactions ===

    def load_transactions(self, trip_id: str) -> list[Transaction]:
        """List a trip's transactions, newest first."""
        txns = [t for t in self._transactions.values() if t.trip_id == trip_id]
        txns.sort(key=lambda t: t.created_at, reverse=True)
        return [t.model_copy(deep=True) for t in txns]

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        """Get a transaction by id."""
        txn = self._transactions.get(transaction_id)
        return txn.model_copy(deep=True) if txn else None

    def save_transaction(self, transaction: Transaction) -> None:
        """Save/update a transaction."""
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        self._save_transactions()

    def delete_transaction(self, transaction_id: str) -> bool:
        """Delete a transaction. Returns True if deleted."""
        if transaction_id in self._transactions:
            del self._transactions[transaction_id]
            self._save_transactions()
            return True
        return False
