"""Click CLI entrypoint for Tripsplit."""

import json
import logging
import mimetypes
import sys
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from functools import wraps
from pathlib import Path
from typing import Any

import click

from . import __version__, templates
from .config import get_log_level, get_owner_id
from .errors import TripsplitError
from .receipts import extract_receipt
from .service import TripService
from .state import TripStore


class Context:
    """Objects shared by all commands."""

    def __init__(self, state_dir: str | None, owner: str):
        self.service = TripService(TripStore(state_dir))
        self.owner = owner


pass_context = click.make_pass_decorator(Context)


def handle_errors(f: Callable[..., None]) -> Callable[..., None]:
    """Print Tripsplit errors and exit with status 1."""

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            f(*args, **kwargs)
        except TripsplitError as e:
            click.echo(templates.ERROR.format(message=e), err=True)
            sys.exit(1)

    return wrapper


def parse_payer(value: str) -> dict[str, Any]:
    """Parse a NAME:AMOUNT payer option."""
    name, sep, amount = value.rpartition(":")
    if not sep or not name.strip():
        raise click.BadParameter(f"expected NAME:AMOUNT, got {value!r}")
    try:
        return {"name": name, "amount": Decimal(amount.strip())}
    except InvalidOperation:
        raise click.BadParameter(f"invalid amount in {value!r}") from None


def _payers(values: tuple[str, ...]) -> list[dict[str, Any]]:
    return [parse_payer(v) for v in values]


def _balances(ctx: Context, trip_id: str) -> str:
    return templates.format_members(ctx.service.get_trip(trip_id, ctx.owner).members)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--state-dir",
    envvar="TRIPSPLIT_STATE_DIR",
    default=None,
    help="State directory (default: ~/.tripsplit)",
)
@click.option(
    "--owner", default=None, help="Caller identity (default: $TRIPSPLIT_OWNER or 'local')"
)
@click.option("--log-level", default=None, help="Logging level (default: $TRIPSPLIT_LOG_LEVEL)")
@click.pass_context
def cli(
    ctx: click.Context, state_dir: str | None, owner: str | None, log_level: str | None
) -> None:
    """Tripsplit - shared trip expenses and minimal settlements."""
    logging.basicConfig(
        level=(log_level or get_log_level()).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = Context(state_dir, owner or get_owner_id())


# === Trips ===


@cli.command()
@pass_context
def trips(ctx: Context) -> None:
    """List your trips."""
    found = ctx.service.list_trips(ctx.owner)
    if not found:
        click.echo(templates.NO_TRIPS)
        return

    click.echo("Trips:")
    for trip in found:
        click.echo(
            templates.TRIP_LINE.format(
                id=trip.id,
                name=trip.name,
                status="closed" if trip.is_closed else "open",
                members=len(trip.members),
            )
        )


@cli.command()
@click.argument("name")
@click.option("--member", "-m", "members", multiple=True, help="Initial member (repeatable)")
@pass_context
@handle_errors
def create(ctx: Context, name: str, members: tuple[str, ...]) -> None:
    """Create a trip called NAME."""
    trip = ctx.service.create_trip(ctx.owner, name, members)
    click.echo(templates.TRIP_CREATED.format(name=trip.name, id=trip.id, slug=trip.public_slug))


@cli.command()
@click.argument("trip_id")
@pass_context
@handle_errors
def show(ctx: Context, trip_id: str) -> None:
    """Show a trip and its balances."""
    click.echo(templates.format_trip(ctx.service.get_trip(trip_id, ctx.owner)))


@cli.command()
@click.argument("slug")
@pass_context
@handle_errors
def public(ctx: Context, slug: str) -> None:
    """Read-only view of a trip by its public SLUG."""
    trip = ctx.service.get_public_trip(slug)
    click.echo(templates.format_trip(trip, public=True))

    txns = ctx.service.list_public_transactions(slug)
    click.echo("")
    if not txns:
        click.echo(templates.NO_TRANSACTIONS)
    for txn in txns:
        click.echo(templates.format_transaction(txn))


@cli.command("add-member")
@click.argument("trip_id")
@click.argument("name")
@pass_context
@handle_errors
def add_member(ctx: Context, trip_id: str, name: str) -> None:
    """Add member NAME to a trip."""
    trip = ctx.service.add_member(trip_id, ctx.owner, name)
    click.echo(templates.MEMBER_ADDED.format(name=name.strip(), trip=trip.name))


@cli.command("delete-trip")
@click.argument("trip_id")
@pass_context
@handle_errors
def delete_trip(ctx: Context, trip_id: str) -> None:
    """Delete a trip and all of its transactions."""
    ctx.service.delete_trip(trip_id, ctx.owner)
    click.echo(templates.TRIP_DELETED.format(id=trip_id))


@cli.command()
@click.argument("trip_id")
@pass_context
@handle_errors
def close(ctx: Context, trip_id: str) -> None:
    """End a trip: lock edits and release the settlement."""
    trip = ctx.service.close_trip(trip_id, ctx.owner)
    click.echo(templates.TRIP_CLOSED.format(name=trip.name))


@cli.command()
@click.argument("trip_id")
@pass_context
@handle_errors
def reopen(ctx: Context, trip_id: str) -> None:
    """Reopen a closed trip."""
    trip = ctx.service.reopen_trip(trip_id, ctx.owner)
    click.echo(templates.TRIP_REOPENED.format(name=trip.name))


# === Transactions ===


@cli.command()
@click.argument("trip_id")
@click.argument("title")
@click.option("--payer", "-p", "payers", multiple=True, required=True, help="NAME:AMOUNT")
@click.option("--participant", "-t", "participants", multiple=True, required=True)
@click.option("--split", "split_type", type=click.Choice(["equal", "custom"]), default="equal")
@click.option(
    "--amount",
    "-a",
    "amounts",
    multiple=True,
    help="Custom share per participant, in participant order",
)
@pass_context
@handle_errors
def add(
    ctx: Context,
    trip_id: str,
    title: str,
    payers: tuple[str, ...],
    participants: tuple[str, ...],
    split_type: str,
    amounts: tuple[str, ...],
) -> None:
    """Record an expense called TITLE on a trip."""
    txn = ctx.service.create_transaction(
        trip_id,
        ctx.owner,
        title,
        _payers(payers),
        list(participants),
        split_type,
        list(amounts) if amounts else None,
    )
    click.echo(
        templates.TRANSACTION_ADDED.format(
            line=templates.format_transaction(txn),
            balances=_balances(ctx, trip_id),
        )
    )


@cli.command()
@click.argument("transaction_id")
@click.option("--title", default=None)
@click.option("--payer", "-p", "payers", multiple=True, help="NAME:AMOUNT (replaces all payers)")
@click.option("--participant", "-t", "participants", multiple=True)
@click.option("--split", "split_type", type=click.Choice(["equal", "custom"]), default=None)
@click.option("--amount", "-a", "amounts", multiple=True)
@pass_context
@handle_errors
def update(
    ctx: Context,
    transaction_id: str,
    title: str | None,
    payers: tuple[str, ...],
    participants: tuple[str, ...],
    split_type: str | None,
    amounts: tuple[str, ...],
) -> None:
    """Change fields of a transaction."""
    txn = ctx.service.update_transaction(
        transaction_id,
        ctx.owner,
        title=title,
        payers=_payers(payers) if payers else None,
        participants=list(participants) if participants else None,
        split_type=split_type,
        custom_amounts=list(amounts) if amounts else None,
    )
    click.echo(
        templates.TRANSACTION_UPDATED.format(
            line=templates.format_transaction(txn),
            balances=_balances(ctx, txn.trip_id),
        )
    )


@cli.command()
@click.argument("transaction_id")
@pass_context
@handle_errors
def remove(ctx: Context, transaction_id: str) -> None:
    """Delete a transaction."""
    members = ctx.service.delete_transaction(transaction_id, ctx.owner)
    click.echo(
        templates.TRANSACTION_DELETED.format(
            id=transaction_id, balances=templates.format_members(members)
        )
    )


@cli.command()
@click.argument("trip_id")
@pass_context
@handle_errors
def transactions(ctx: Context, trip_id: str) -> None:
    """List a trip's transactions, newest first."""
    txns = ctx.service.list_transactions(trip_id, ctx.owner)
    if not txns:
        click.echo(templates.NO_TRANSACTIONS)
        return
    for txn in txns:
        click.echo(templates.format_transaction(txn))


# === Balances & settlement ===


@cli.command()
@click.argument("trip_id")
@pass_context
@handle_errors
def balances(ctx: Context, trip_id: str) -> None:
    """Show member balances (positive = is owed money)."""
    click.echo(_balances(ctx, trip_id))


@cli.command()
@click.argument("trip_id")
@pass_context
@handle_errors
def recompute(ctx: Context, trip_id: str) -> None:
    """Rebuild balances from the full transaction history."""
    ctx.service.get_trip(trip_id, ctx.owner)
    members = ctx.service.recompute_trip_balances(trip_id)
    click.echo(templates.format_members(members))


def _echo_settlement(result: Any, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
    else:
        click.echo(templates.format_settlement(result))


@cli.command()
@click.argument("trip_id")
@click.option("--preview", is_flag=True, help="Compute even if the trip is still open")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@pass_context
@handle_errors
def settle(ctx: Context, trip_id: str, preview: bool, as_json: bool) -> None:
    """Show who pays whom to settle a closed trip."""
    if preview:
        ctx.service.get_trip(trip_id, ctx.owner)
        result = ctx.service.compute_trip_settlement(trip_id)
    else:
        result = ctx.service.get_settlement(trip_id, ctx.owner)
    _echo_settlement(result, as_json)


@cli.command("public-settle")
@click.argument("slug")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@pass_context
@handle_errors
def public_settle(ctx: Context, slug: str, as_json: bool) -> None:
    """Settlement of a closed trip by its public SLUG."""
    _echo_settlement(ctx.service.get_public_settlement(slug), as_json)


# === Receipts ===


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@handle_errors
def receipt(image: Path, as_json: bool) -> None:
    """Extract merchant, items and total from a receipt IMAGE."""
    mime_type = mimetypes.guess_type(image.name)[0] or "image/jpeg"
    info = extract_receipt(image.read_bytes(), mime_type)
    if as_json:
        click.echo(json.dumps(info.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        click.echo(templates.format_receipt(info))


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
