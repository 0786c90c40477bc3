"""Fee schedule for cross-chain transfers.

Every operation burns one genesis fee on the chain it is issued on. A send
pays up front for the hops the receiver still has to perform, so its export
carries extra fee units alongside the amount:

    SEND_OUT   -> PRIMARY    export P->X, then import X, export X->P, import P
    SEND_OUT   -> SECONDARY  export P->X, then import X
    RECEIVE_IN -> PRIMARY    import X, export X->P, import P
    RECEIVE_IN -> SECONDARY  import X

Callers must use these functions instead of hard-coding multipliers.
"""

from .models import ChainClass, Direction, TransferIntent


def hop_count(direction: Direction, destination: ChainClass) -> int:
    if direction == Direction.SEND_OUT:
        return 1
    if direction == Direction.RECEIVE_IN:
        if destination == ChainClass.PRIMARY:
            return 3
        if destination == ChainClass.SECONDARY:
            return 1
    raise ValueError(f"Unsupported transfer route: {direction}, {destination}")


def fee_multiplier(direction: Direction, destination: ChainClass) -> int:
    if direction == Direction.SEND_OUT:
        if destination == ChainClass.PRIMARY:
            return 4
        if destination == ChainClass.SECONDARY:
            return 2
    if direction == Direction.RECEIVE_IN:
        return hop_count(direction, destination)
    raise ValueError(f"Unsupported transfer route: {direction}, {destination}")


def total_fee(direction: Direction, destination: ChainClass, fee: int) -> int:
    if fee < 0:
        raise ValueError("Fee must be non-negative.")
    return fee_multiplier(direction, destination) * fee


def carried_fee_units(direction: Direction, destination: ChainClass, step_index: int) -> int:
    """Fee units still riding with the value once the step has been issued.

    A send pays for every hop the receiver has left; each receive hop burns
    one of those units.
    """
    receive_hops = hop_count(Direction.RECEIVE_IN, destination)
    if direction == Direction.SEND_OUT:
        if step_index != 0:
            raise ValueError("A send has a single step.")
        return receive_hops
    if direction == Direction.RECEIVE_IN:
        if not 0 <= step_index < receive_hops:
            raise ValueError(f"Step {step_index} is outside the receive route.")
        return receive_hops - step_index - 1
    raise ValueError(f"Unsupported direction: {direction}")


def required_debit(intent: TransferIntent) -> int:
    """Total amount leaving the source balance for the intent."""
    if intent.direction == Direction.SEND_OUT:
        return intent.amount + total_fee(intent.direction, intent.destination, intent.fee)
    if intent.direction == Direction.RECEIVE_IN:
        return 0
    raise ValueError(f"Unsupported direction: {intent.direction}")
