"""Quantity mutation rules.

Pure functions: given the quantity currently on hand, a transaction type and
the requested amount, compute the before/change/after triple that both the
inventory record and its ledger entry will carry. Nothing here touches the
database.

Quantities are fixed-precision decimals with four fractional digits, enough
for fractional units (kg, litres) without float drift. Amounts that need more
precision are rejected instead of rounded, so quantity is never lost silently.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from warehouse_api.exceptions import InsufficientStock, InvalidAmount, UnknownTransactionType
from warehouse_api.models.inventory_transaction import TransactionType

QUANTITY_QUANTUM = Decimal("0.0001")
ZERO = Decimal("0").quantize(QUANTITY_QUANTUM)
# Numeric(18, 4) leaves fourteen integer digits
MAX_QUANTITY = Decimal(10) ** 14

# Amount is a delta that must be strictly positive
_INCREASING = {TransactionType.ADD, TransactionType.TRANSFER_IN}
_DECREASING = {TransactionType.REMOVE, TransactionType.TRANSFER_OUT}
# Amount is the absolute target quantity
_SETTING = {TransactionType.ADJUST, TransactionType.UPDATE}

AmountLike = Union[Decimal, int, str]


@dataclass(frozen=True)
class QuantityMutation:
    quantity_before: Decimal
    quantity_change: Decimal
    quantity_after: Decimal


def to_quantity(value: AmountLike) -> Decimal:
    """Convert an amount to a quantized Decimal.

    Raises:
        InvalidAmount: not a finite number, or more than four decimal places
    """
    if isinstance(value, bool):
        raise InvalidAmount(value, "not_a_number")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(value, "not_a_number")
    if not amount.is_finite():
        raise InvalidAmount(value, "not_finite")
    if abs(amount) >= MAX_QUANTITY:
        raise InvalidAmount(value, "too_large")
    quantized = amount.quantize(QUANTITY_QUANTUM)
    if quantized != amount:
        raise InvalidAmount(value, "too_many_decimal_places")
    return quantized


def parse_transaction_type(value: Union[TransactionType, str]) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(str(value).strip().lower())
    except ValueError:
        raise UnknownTransactionType(value)


def compute_mutation(
    current_quantity: Optional[AmountLike],
    transaction_type: Union[TransactionType, str],
    requested_amount: AmountLike,
) -> QuantityMutation:
    """
    Compute the quantity change for one transaction.

    Args:
        current_quantity: Quantity on hand, or None when no record exists yet
        transaction_type: Kind of mutation
        requested_amount: Delta for add/remove/transfers, target quantity for
            adjust/update, placed quantity for initial (ignored for delete)

    Returns:
        QuantityMutation with before, signed change and after

    Raises:
        InvalidAmount: amount out of range for the transaction type
        InsufficientStock: a removal would go below zero
        UnknownTransactionType: unrecognised type
    """
    txn_type = parse_transaction_type(transaction_type)

    if txn_type == TransactionType.INITIAL:
        if current_quantity is not None:
            raise InvalidAmount(requested_amount, "initial_requires_absent_record")
        amount = to_quantity(requested_amount)
        if amount < 0:
            raise InvalidAmount(requested_amount, "must_not_be_negative")
        return QuantityMutation(ZERO, amount, amount)

    if current_quantity is None:
        raise InvalidAmount(requested_amount, "record_required")
    before = to_quantity(current_quantity)

    if txn_type == TransactionType.DELETE:
        return QuantityMutation(before, -before, ZERO)

    amount = to_quantity(requested_amount)

    if txn_type in _INCREASING:
        if amount <= 0:
            raise InvalidAmount(requested_amount, "must_be_positive")
        if before + amount >= MAX_QUANTITY:
            raise InvalidAmount(requested_amount, "too_large")
        return QuantityMutation(before, amount, before + amount)

    if txn_type in _DECREASING:
        if amount <= 0:
            raise InvalidAmount(requested_amount, "must_be_positive")
        after = before - amount
        if after < 0:
            raise InsufficientStock(requested=amount, available=before)
        return QuantityMutation(before, -amount, after)

    if txn_type in _SETTING:
        if amount < 0:
            raise InvalidAmount(requested_amount, "must_not_be_negative")
        # Change is always derived from the target, never taken from the caller
        return QuantityMutation(before, amount - before, amount)

    raise UnknownTransactionType(txn_type.value)


@dataclass(frozen=True)
class LedgerReplay:
    entry_count: int
    quantity: Decimal
    first_break_entry_id: Optional[int] = None

    @property
    def consistent(self) -> bool:
        return self.first_break_entry_id is None


def replay_ledger(entries: Iterable) -> LedgerReplay:
    """Fold ledger entries in order and find the first broken link.

    An entry breaks the chain when its own arithmetic is wrong
    (before + change != after) or when its before does not continue from the
    previous entry's after. A record's history always starts from zero.
    """
    running = ZERO
    count = 0
    first_break = None
    for entry in entries:
        count += 1
        before = to_quantity(entry.quantity_before)
        change = to_quantity(entry.quantity_change)
        after = to_quantity(entry.quantity_after)
        if first_break is None and (before != running or before + change != after):
            first_break = entry.id
        running = after
    return LedgerReplay(entry_count=count, quantity=running, first_break_entry_id=first_break)
