"""Deterministic step plan builder with validation."""

from typing import List, Tuple

from .fees import carried_fee_units, hop_count, required_debit, total_fee
from .guard import AmountLike, ensure_distinct_addresses, to_base_units
from .models import (
    ChainClass,
    Direction,
    StepDefinition,
    StepKind,
    TransferIntent,
    TransferPlan,
)


class PlanValidationError(ValueError):
    """Raised when a transfer plan violates hard validation rules."""


def build_intent(
    direction: Direction,
    destination: ChainClass,
    display_amount: AmountLike,
    fee: int,
    source_address: str,
    destination_address: str,
) -> TransferIntent:
    amount = to_base_units(display_amount)
    ensure_distinct_addresses(direction, destination, source_address, destination_address)
    return TransferIntent(
        direction=direction,
        destination=destination,
        amount=amount,
        fee=fee,
        source_address=source_address,
        destination_address=destination_address,
    )


class TransferPlanner:
    """Builds the ordered step list a transfer intent requires."""

    def plan(self, intent: TransferIntent) -> TransferPlan:
        if not isinstance(intent.direction, Direction):
            raise PlanValidationError("Unsupported direction.")
        if not isinstance(intent.destination, ChainClass):
            raise PlanValidationError("Unsupported destination chain.")

        if intent.direction == Direction.SEND_OUT:
            steps = _send_steps(intent)
        elif intent.direction == Direction.RECEIVE_IN:
            steps = _receive_steps(intent)
        else:
            raise PlanValidationError("Unsupported direction.")

        plan = TransferPlan(
            intent=intent,
            steps=steps,
            total_fee=total_fee(intent.direction, intent.destination, intent.fee),
            total_debit=required_debit(intent),
        )
        validate_plan(plan)
        return plan


def validate_plan(plan: TransferPlan) -> None:
    intent = plan.intent
    if intent.amount <= 0:
        raise PlanValidationError("Transfer amount must be positive.")
    if intent.fee < 0:
        raise PlanValidationError("Fee must be non-negative.")
    if len(plan.steps) != hop_count(intent.direction, intent.destination):
        raise PlanValidationError("Step count does not match the transfer route.")
    if [step.index for step in plan.steps] != list(range(len(plan.steps))):
        raise PlanValidationError("Steps must be numbered consecutively from zero.")

    for previous, step in zip(plan.steps, plan.steps[1:]):
        if step.chain != _landing_chain(previous):
            raise PlanValidationError("Each step must start where the previous one landed.")
        if step.kind == previous.kind:
            raise PlanValidationError("Exports and imports must alternate.")

    for step in plan.steps:
        if step.chain == step.counterpart:
            raise PlanValidationError("A step must cross between two chains.")
        if step.amount <= 0:
            raise PlanValidationError("Step amount must be positive.")


def _send_steps(intent: TransferIntent) -> Tuple[StepDefinition, ...]:
    # Sends always leave the primary chain towards the secondary chain; the
    # receiver completes the route.
    carried = carried_fee_units(intent.direction, intent.destination, 0)
    return (
        _step(
            index=0,
            kind=StepKind.EXPORT,
            chain=ChainClass.PRIMARY,
            counterpart=ChainClass.SECONDARY,
            amount=intent.amount + carried * intent.fee,
            owner=intent.destination_address,
        ),
    )


def _receive_steps(intent: TransferIntent) -> Tuple[StepDefinition, ...]:
    route: List[Tuple[StepKind, ChainClass, ChainClass]] = [
        (StepKind.IMPORT, ChainClass.SECONDARY, ChainClass.PRIMARY),
    ]
    if intent.destination == ChainClass.PRIMARY:
        route.append((StepKind.EXPORT, ChainClass.SECONDARY, ChainClass.PRIMARY))
        route.append((StepKind.IMPORT, ChainClass.PRIMARY, ChainClass.SECONDARY))

    steps = []
    for index, (kind, chain, counterpart) in enumerate(route):
        carried = carried_fee_units(intent.direction, intent.destination, index)
        steps.append(
            _step(
                index=index,
                kind=kind,
                chain=chain,
                counterpart=counterpart,
                amount=intent.amount + carried * intent.fee,
                owner=intent.destination_address,
            )
        )
    return tuple(steps)


def _step(
    index: int,
    kind: StepKind,
    chain: ChainClass,
    counterpart: ChainClass,
    amount: int,
    owner: str,
) -> StepDefinition:
    if kind == StepKind.EXPORT:
        description = f"ExportTx {chain.alias} -> {counterpart.alias}"
    else:
        description = f"ImportTx {counterpart.alias} -> {chain.alias}"
    return StepDefinition(
        index=index,
        kind=kind,
        chain=chain,
        counterpart=counterpart,
        amount=amount,
        owner=owner,
        description=description,
    )


def _landing_chain(step: StepDefinition) -> ChainClass:
    if step.kind == StepKind.EXPORT:
        return step.counterpart
    return step.chain
