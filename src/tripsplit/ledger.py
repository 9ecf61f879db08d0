"""Pure financial logic: input validation and balance recomputation. No I/O."""

import math
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .errors import InvalidInputError
from .models import Member, Payer, SplitType, Transaction

CENT = Decimal("0.01")


def round_amount(amount: Decimal) -> Decimal:
    """Round to cents, halves away from zero."""
    rounded = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    # No "-0.00"
    return rounded if rounded else abs(rounded)


def name_key(name: str) -> str:
    """Identity of a member name: case-insensitive, surrounding spaces ignored."""
    return name.strip().lower()


def total_paid(payers: Iterable[Payer]) -> Decimal:
    """Sum of what the payers fronted."""
    return sum((p.amount for p in payers), Decimal("0"))


def _parse_amount(value: Any) -> Decimal | None:
    """Parse a user-supplied amount, or None if it is not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = str(value)
    try:
        amount = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def normalize_title(title: Any) -> str:
    """Validate and trim a transaction title."""
    if not isinstance(title, str) or not title.strip():
        raise InvalidInputError("title is required")
    return title.strip()


def normalize_payers(payers: Any) -> list[Payer]:
    """
    Validate payers, dropping unusable entries.

    Entries with a blank name or an amount that is not a number >= 0 are
    skipped. At least one valid payer must remain.

    Args:
        payers: Sequence of {"name": ..., "amount": ...} mappings or Payer objects

    Returns:
        List of Payer objects with trimmed names

    Raises:
        InvalidInputError: If no valid payer is given
    """
    if not isinstance(payers, Sequence) or isinstance(payers, str) or not payers:
        raise InvalidInputError("payers required")

    valid: list[Payer] = []
    for entry in payers:
        if isinstance(entry, Payer):
            name: Any = entry.name
            raw_amount: Any = entry.amount
        elif isinstance(entry, dict):
            name = entry.get("name")
            raw_amount = entry.get("amount")
        else:
            continue
        if not isinstance(name, str) or not name.strip():
            continue
        amount = _parse_amount(raw_amount)
        if amount is None or amount < 0:
            continue
        valid.append(Payer(name=name.strip(), amount=amount))

    if not valid:
        raise InvalidInputError("valid payers required")
    return valid


def normalize_participants(participants: Any) -> list[str]:
    """
    Validate participants: trimmed, blanks dropped, at least one left.

    Names must be unique (case-insensitively), otherwise a member would owe
    more than one share.
    """
    if not isinstance(participants, Sequence) or isinstance(participants, str) or not participants:
        raise InvalidInputError("participants required")

    names = [str(p).strip() for p in participants if p is not None and str(p).strip()]
    if not names:
        raise InvalidInputError("participants required")
    if len({name_key(n) for n in names}) != len(names):
        raise InvalidInputError("participants must be unique")
    return names


def normalize_split_type(split_type: Any) -> SplitType:
    """Validate a split type ("equal" or "custom")."""
    try:
        return SplitType(split_type)
    except ValueError:
        raise InvalidInputError("splitType must be equal|custom") from None


def validate_splits(
    amounts: Sequence[Decimal], total: Decimal, tolerance: Decimal = CENT
) -> None:
    """
    Validate that custom amounts sum to the transaction total.

    Args:
        amounts: Per-participant amounts
        total: Expected total (sum of payer amounts)
        tolerance: Acceptable difference (default 0.01 for rounding)

    Raises:
        InvalidInputError: If amounts don't sum to total within tolerance
    """
    amounts_sum = sum(amounts, Decimal("0"))
    diff = abs(amounts_sum - total)
    if diff > tolerance:
        raise InvalidInputError(
            f"customAmounts sum to {amounts_sum} but total paid is {total} "
            f"(difference: {diff}, tolerance: {tolerance})"
        )


def normalize_custom_amounts(
    split_type: SplitType,
    participants: Sequence[str],
    custom_amounts: Any,
    total: Decimal,
) -> list[Decimal]:
    """
    Validate custom amounts against the participants.

    For an equal split the amounts are discarded. For a custom split they must
    be non-negative numbers, one per participant, summing to the total paid.
    """
    if split_type is SplitType.EQUAL:
        return []

    if (
        not isinstance(custom_amounts, Sequence)
        or isinstance(custom_amounts, str)
        or len(custom_amounts) != len(participants)
    ):
        raise InvalidInputError("customAmounts must align with participants")

    amounts: list[Decimal] = []
    for raw in custom_amounts:
        amount = _parse_amount(raw)
        if amount is None or amount < 0:
            raise InvalidInputError(f"invalid custom amount: {raw!r}")
        amounts.append(amount)

    validate_splits(amounts, total)
    return amounts


def recompute_balances(
    members: Sequence[Member],
    transactions: Iterable[Transaction],
) -> list[Member]:
    """
    Rebuild every member's net balance from the full transaction history.

    Positive balance = member is owed money (fronted more than their share)
    Negative balance = member owes money

    Names are matched case-insensitively; the first spelling seen is kept for
    display. Names that only appear in transactions are added to the roster.
    A custom split whose amounts don't line up with its participants only
    credits the payers.

    Args:
        members: Current roster (its balances are ignored)
        transactions: All transactions of the trip, in any order

    Returns:
        Roster in original order with fresh balances, followed by newly
        discovered members sorted by name
    """
    balances: dict[str, Decimal] = {}
    display: dict[str, str] = {}

    for member in members:
        key = name_key(member.name)
        if key not in balances:
            balances[key] = Decimal("0")
            display[key] = member.name

    def track(name: str) -> str:
        key = name_key(name)
        if key not in balances:
            balances[key] = Decimal("0")
            display[key] = name.strip()
        return key

    for txn in transactions:
        for payer in txn.payers:
            track(payer.name)
        for name in txn.participants:
            track(name)

        # Credit payers
        for payer in txn.payers:
            balances[name_key(payer.name)] += payer.amount

        # Debit participants
        if not txn.participants:
            continue

        if txn.split_type == SplitType.EQUAL:
            share = total_paid(txn.payers) / len(txn.participants)
            for name in txn.participants:
                balances[name_key(name)] -= share
        elif txn.split_type == SplitType.CUSTOM:
            amounts = txn.custom_amounts
            if amounts is None or len(amounts) != len(txn.participants):
                continue
            for name, amount in zip(txn.participants, amounts):
                balances[name_key(name)] -= amount

    roster_keys = {name_key(m.name) for m in members}
    updated = [
        Member(name=m.name, balance=round_amount(balances[name_key(m.name)])) for m in members
    ]
    discovered = [
        Member(name=display[key], balance=round_amount(balance))
        for key, balance in balances.items()
        if key not in roster_keys
    ]
    discovered.sort(key=lambda m: m.name)

    return updated + discovered
