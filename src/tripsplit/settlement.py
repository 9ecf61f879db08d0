"""Settlement engine: turn net balances into transfers that clear every debt. No I/O.

Small groups get an exhaustive search for the fewest possible transfers;
larger groups use a greedy largest-debtor/largest-creditor matching.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from .ledger import round_amount
from .models import Member, SettlementResult, Transfer

logger = logging.getLogger(__name__)

EPSILON = Decimal("0.000001")

# Rosters up to this size are settled with the exhaustive search
OPTIMAL_MAX_PARTICIPANTS = 15

# Search nodes visited before giving up on the exhaustive search
MAX_SEARCH_NODES = 200_000

ZERO = Decimal("0")


class SearchBudgetExceeded(Exception):
    """The exhaustive search visited more nodes than allowed."""

    pass


@dataclass
class _Party:
    name: str
    remaining: Decimal


class _NodeBudget:
    def __init__(self, limit: int):
        self.limit = limit
        self.visited = 0

    def spend(self) -> None:
        self.visited += 1
        if self.visited > self.limit:
            raise SearchBudgetExceeded(f"search exceeded {self.limit} nodes")


def partition(
    balances: Sequence[Member],
) -> tuple[list[tuple[str, Decimal]], list[tuple[str, Decimal]]]:
    """
    Split balances into debtors and creditors, dropping near-zero balances.

    Returns:
        (debtors, creditors) as (name, positive amount) lists, in input order
    """
    debtors: list[tuple[str, Decimal]] = []
    creditors: list[tuple[str, Decimal]] = []

    for member in balances:
        if member.balance < -EPSILON:
            debtors.append((member.name, -member.balance))
        elif member.balance > EPSILON:
            creditors.append((member.name, member.balance))

    return debtors, creditors


def _match(debt: Decimal, credit: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    """
    Pay as much of `debt` as `credit` allows.

    The transfer is rounded to cents. The exhausted side drops to zero, the
    other side keeps what is left after the rounded transfer.

    Returns:
        (transfer amount, debt left, credit left)
    """
    pay = min(debt, credit)
    amount = round_amount(pay)
    debt_left = ZERO if pay == debt else max(debt - amount, ZERO)
    credit_left = ZERO if pay == credit else max(credit - amount, ZERO)
    return amount, debt_left, credit_left


def _search(
    debtors: list[_Party],
    creditors: list[_Party],
    index: int,
    current: list[Transfer],
    best: list[Transfer] | None,
    budget: _NodeBudget,
) -> list[Transfer] | None:
    """
    Depth-first search for the assignment with the fewest transfers.

    `debtors` and `creditors` are mutated while exploring a branch and
    restored before returning.

    Returns:
        The best complete assignment known so far, or None if none was found
    """
    while index < len(debtors) and debtors[index].remaining <= EPSILON:
        index += 1

    # Debt left once every credit is paid out is rounding residue
    credit_left = any(c.remaining > EPSILON for c in creditors)
    if index == len(debtors) or not credit_left:
        if best is None or len(current) < len(best):
            return list(current)
        return best

    if best is not None and len(current) >= len(best):
        return best

    budget.spend()
    debtor = debtors[index]

    for creditor in creditors:
        if creditor.remaining <= EPSILON:
            continue

        saved = (debtor.remaining, creditor.remaining)
        amount, debtor.remaining, creditor.remaining = _match(*saved)
        if amount > 0:
            current.append(
                Transfer(from_person=debtor.name, to_person=creditor.name, amount=amount)
            )

        best = _search(debtors, creditors, index, current, best, budget)

        if amount > 0:
            current.pop()
        debtor.remaining, creditor.remaining = saved

    return best


def settle_optimal(
    debtors: Sequence[tuple[str, Decimal]],
    creditors: Sequence[tuple[str, Decimal]],
    max_nodes: int = MAX_SEARCH_NODES,
) -> list[Transfer]:
    """
    Find a settlement with the minimum number of transfers.

    Among equally short settlements the first one found wins.

    Raises:
        SearchBudgetExceeded: If the search visits more than `max_nodes` nodes
    """
    best = _search(
        [_Party(name, amount) for name, amount in debtors],
        [_Party(name, amount) for name, amount in creditors],
        0,
        [],
        None,
        _NodeBudget(max_nodes),
    )
    return best or []


def settle_greedy(
    debtors: Sequence[tuple[str, Decimal]],
    creditors: Sequence[tuple[str, Decimal]],
) -> list[Transfer]:
    """
    Settle by repeatedly pairing the largest debtor with the largest creditor.

    Ties are broken by name so the result is deterministic. Not guaranteed
    to be minimal.
    """

    def order(p: _Party) -> tuple[Decimal, str]:
        return (-p.remaining, p.name)

    debts = sorted((_Party(name, amount) for name, amount in debtors), key=order)
    credits = sorted((_Party(name, amount) for name, amount in creditors), key=order)
    transfers: list[Transfer] = []

    while debts and credits:
        debtor, creditor = debts[0], credits[0]
        amount, debtor.remaining, creditor.remaining = _match(
            debtor.remaining, creditor.remaining
        )
        if amount > 0:
            transfers.append(
                Transfer(from_person=debtor.name, to_person=creditor.name, amount=amount)
            )

        debts = sorted((p for p in debts if p.remaining > EPSILON), key=order)
        credits = sorted((p for p in credits if p.remaining > EPSILON), key=order)

    return transfers


def compute_settlement(
    balances: Sequence[Member],
    max_nodes: int = MAX_SEARCH_NODES,
) -> SettlementResult:
    """
    Compute transfers that bring every balance to zero.

    The algorithm is chosen by roster size: up to OPTIMAL_MAX_PARTICIPANTS
    members get the exhaustive search, larger rosters (or searches that blow
    the node budget) get the greedy matching.

    Args:
        balances: Members with their net balances
        max_nodes: Node budget for the exhaustive search

    Returns:
        SettlementResult with transfers in the order they were found
    """
    debtors, creditors = partition(balances)

    if not debtors and not creditors:
        return SettlementResult(settlements=[], algorithm="none")

    if len(balances) <= OPTIMAL_MAX_PARTICIPANTS:
        try:
            transfers = settle_optimal(debtors, creditors, max_nodes)
        except SearchBudgetExceeded as e:
            logger.warning("Optimal settlement abandoned (%s), falling back to greedy", e)
        else:
            logger.debug("Optimal settlement: %d transfers", len(transfers))
            return SettlementResult(settlements=transfers, algorithm="optimal")

    transfers = settle_greedy(debtors, creditors)
    logger.debug("Greedy settlement: %d transfers", len(transfers))
    return SettlementResult(settlements=transfers, algorithm="greedy")
