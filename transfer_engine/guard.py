"""Precondition checks run before any operation is built."""

from decimal import Decimal, InvalidOperation
from typing import Union

from .errors import InvalidAmount, InvalidResumeStep, SelfTransfer
from .fees import hop_count
from .models import ChainClass, Direction

DISPLAY_DECIMALS = 9
BASE_UNITS_PER_DISPLAY_UNIT = 10**DISPLAY_DECIMALS

AmountLike = Union[str, int, float, Decimal]


def to_base_units(display_amount: AmountLike) -> int:
    """Convert a display amount to base units without rounding."""
    try:
        value = Decimal(str(display_amount).strip())
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount(f"Amount {display_amount!r} is not a number.") from exc

    if not value.is_finite():
        raise InvalidAmount(f"Amount {display_amount!r} is not a finite number.")
    if value <= 0:
        raise InvalidAmount(f"Amount {display_amount} must be greater than zero.")

    scaled = value * BASE_UNITS_PER_DISPLAY_UNIT
    if scaled != scaled.to_integral_value():
        raise InvalidAmount(
            f"Amount {display_amount} has more than {DISPLAY_DECIMALS} decimal places."
        )
    return int(scaled)


def to_display_units(base_units: int) -> Decimal:
    return Decimal(base_units).scaleb(-DISPLAY_DECIMALS)


def format_display(base_units: int) -> str:
    return f"{to_display_units(base_units):.{DISPLAY_DECIMALS}f}"


def ensure_distinct_addresses(
    direction: Direction,
    destination: ChainClass,
    sender: str,
    receiver: str,
) -> None:
    if direction == Direction.SEND_OUT and destination == ChainClass.PRIMARY:
        if sender.lower() == receiver.lower():
            raise SelfTransfer("Sender address is the same as the receiver address.")


def validate_resume_step(direction: Direction, destination: ChainClass, step: int) -> None:
    steps = hop_count(direction, destination)
    if not 0 <= step < steps:
        raise InvalidResumeStep(
            f"Resume step {step} is invalid for {direction.value} to {destination.value}; "
            f"expected a value between 0 and {steps - 1}."
        )
