"""Response message templates - all user-facing text lives here."""

from decimal import Decimal

from .models import Member, ReceiptInfo, SettlementResult, SplitType, Transaction, Trip


def format_amount(amount: Decimal) -> str:
    """Format an amount with two decimals."""
    return f"{amount:.2f}"


def format_members(members: list[Member]) -> str:
    """Format member balances, one per line."""
    if not members:
        return "  (no members)"

    width = max(len(m.name) for m in members)
    lines = []
    for m in members:
        sign = "+" if m.balance > 0 else ""
        lines.append(f"  {m.name.ljust(width)}  {sign}{format_amount(m.balance)}")
    return "\n".join(lines)


def format_settlement(result: SettlementResult) -> str:
    """Format a settlement result for display."""
    if not result.settlements:
        return ALL_SETTLED

    lines = [
        f"• {t.from_person} → {t.to_person}: {format_amount(t.amount)}" for t in result.settlements
    ]
    lines.append(f"({len(result.settlements)} transfers, {result.algorithm})")
    return "\n".join(lines)


def format_transaction(txn: Transaction) -> str:
    """One-line summary of a transaction."""
    payers = ", ".join(f"{p.name} {format_amount(p.amount)}" for p in txn.payers)
    if txn.split_type == SplitType.CUSTOM and txn.custom_amounts:
        shares = ", ".join(
            f"{name} {format_amount(amount)}"
            for name, amount in zip(txn.participants, txn.custom_amounts)
        )
    else:
        shares = " & ".join(txn.participants)
    return TRANSACTION_LINE.format(
        id=txn.id,
        title=txn.title,
        total=format_amount(txn.total_amount),
        payers=payers,
        split=txn.split_type.value,
        shares=shares,
    )


def format_trip(trip: Trip, public: bool = False) -> str:
    """Trip header plus balances. Public views omit the owner."""
    status = "closed" if trip.is_closed else "open"
    owner = "" if public else f"\nOwner: {trip.owner_id}"
    return TRIP_SUMMARY.format(
        name=trip.name,
        id=trip.id,
        slug=trip.public_slug,
        status=status,
        owner=owner,
        balances=format_members(trip.members),
    )


def format_receipt(info: ReceiptInfo) -> str:
    items = ", ".join(info.items) if info.items else "-"
    return RECEIPT.format(
        merchant=info.merchant or "-",
        category=info.category,
        items=items,
        total=format_amount(info.total),
        title=info.title.replace("\n", " / "),
        model=info.model or "-",
    )


TRIP_SUMMARY = (
    "🧳 *{name}* [{status}]\n"
    "Id: {id}\n"
    "Public slug: {slug}{owner}\n\n"
    "📊 Balances:\n{balances}"
)

TRIP_LINE = "  • {id}  {name} [{status}] - {members} members"

TRANSACTION_LINE = "• {id}  *{title}* {total} paid by {payers} ({split}: {shares})"

TRIP_CREATED = "🎉 Trip *{name}* created!\nId: {id}\nPublic slug: {slug}"

MEMBER_ADDED = "✅ Added {name} to *{trip}*"

TRIP_DELETED = "🗑️ Deleted trip {id}"

TRIP_CLOSED = "🔒 *{name}* is closed. Settlement is now available."

TRIP_REOPENED = "🔓 *{name}* is open again."

TRANSACTION_ADDED = "✅ {line}\n\n📊 Balances:\n{balances}"

TRANSACTION_UPDATED = "✏️ {line}\n\n📊 Balances:\n{balances}"

TRANSACTION_DELETED = "↩️ Deleted transaction {id}\n\n📊 Balances:\n{balances}"

RECEIPT = (
    "🧾 Merchant: {merchant}\n"
    "Category: {category}\n"
    "Items: {items}\n"
    "Total: {total}\n"
    "Suggested title: {title}\n"
    "Model: {model}"
)

NO_TRIPS = "No trips found."

NO_TRANSACTIONS = "No transactions yet."

ALL_SETTLED = "✨ All settled up!"

ERROR = "⚠️ {message}"
