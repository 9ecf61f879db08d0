"""Pydantic models for Tripsplit trips, transactions and settlements."""

import secrets
import string
import time
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_serializer, field_validator

_BASE36 = string.digits + string.ascii_lowercase


def _to_decimal(v: Any) -> Decimal:
    if isinstance(v, Decimal):
        return v
    if isinstance(v, float):
        return Decimal(str(v))
    return Decimal(v)


def _base36(n: int) -> str:
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_slug() -> str:
    """Short public slug: 6 random base-36 chars + last 4 of the ms timestamp."""
    rand = "".join(secrets.choice(_BASE36) for _ in range(6))
    ts = _base36(int(time.time() * 1000))[-4:]
    return f"{rand}{ts}"


def new_id() -> str:
    return uuid4().hex


class SplitType(str, Enum):
    """How a transaction is divided among its participants."""

    EQUAL = "equal"
    CUSTOM = "custom"  # Explicit amount per participant


class Member(BaseModel):
    """A trip member and their cached net balance."""

    name: str
    balance: Decimal = Decimal("0")

    @field_validator("balance", mode="before")
    @classmethod
    def coerce_balance(cls, v: Any) -> Decimal:
        return _to_decimal(v)

    @field_serializer("balance")
    def serialize_balance(self, v: Decimal) -> str:
        return str(v)


class Payer(BaseModel):
    """Someone who fronted money for a transaction."""

    name: str
    amount: Decimal

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return _to_decimal(v)

    @field_serializer("amount")
    def serialize_amount(self, v: Decimal) -> str:
        return str(v)


class Transaction(BaseModel):
    """
    A single expense in a trip.

    Shape rules (non-empty payers, aligned custom amounts, ...) are enforced
    when input is accepted, not here: stored transactions are loaded as-is.
    """

    id: str = Field(default_factory=new_id)
    trip_id: str
    title: str
    payers: list[Payer]
    participants: list[str] = Field(default_factory=list)
    split_type: SplitType = SplitType.EQUAL
    custom_amounts: list[Decimal] | None = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("custom_amounts", mode="before")
    @classmethod
    def coerce_custom_amounts(cls, v: Any) -> list[Decimal] | None:
        if v is None:
            return None
        return [_to_decimal(x) for x in v]

    @field_serializer("custom_amounts")
    def serialize_custom_amounts(self, v: list[Decimal] | None) -> list[str] | None:
        return [str(x) for x in v] if v is not None else None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_amount(self) -> Decimal:
        """Sum of payer amounts; always derived."""
        return sum((p.amount for p in self.payers), Decimal("0"))


class Trip(BaseModel):
    """A shared ledger: owner, members and the open/closed flag."""

    id: str = Field(default_factory=new_id)
    owner_id: str
    name: str
    members: list[Member] = Field(default_factory=list)
    public_slug: str = Field(default_factory=generate_slug)
    is_closed: bool = False
    ended_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class Transfer(BaseModel):
    """A payment from a debtor to a creditor that settles (part of) a debt."""

    model_config = ConfigDict(populate_by_name=True)

    from_person: str = Field(alias="from")
    to_person: str = Field(alias="to")
    amount: Decimal

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return _to_decimal(v)

    @field_serializer("amount")
    def serialize_amount(self, v: Decimal) -> str:
        return str(v)


Algorithm = Literal["optimal", "greedy", "none"]


class SettlementResult(BaseModel):
    """Transfers that zero out every balance, and how they were found."""

    settlements: list[Transfer] = Field(default_factory=list)
    algorithm: Algorithm = "none"


class ReceiptInfo(BaseModel):
    """Structured data extracted from a receipt image."""

    merchant: str = ""
    category: str = "Other"
    items: list[str] = Field(default_factory=list)
    total: Decimal = Decimal("0")
    title: str = "Expense"
    model: str | None = None

    @field_validator("total", mode="before")
    @classmethod
    def coerce_total(cls, v: Any) -> Decimal:
        return _to_decimal(v)

    @field_serializer("total")
    def serialize_total(self, v: Decimal) -> str:
        return str(v)
