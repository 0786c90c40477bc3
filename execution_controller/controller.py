"""Transfer state machine driving one transfer invocation step by step."""

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from loguru import logger

from transfer_engine.guard import format_display, validate_resume_step
from transfer_engine.models import ChainClass, Direction, StepDefinition, TransferIntent, TransferPlan
from transfer_engine.planner import TransferPlanner
from wallet_core.models import SigningContext

from .config import TransferConfig
from .executor import StepExecutor
from .modes import MachineState, StepPhase, StepResult, Transition

RESUME_FLAG = "--receive-recovery-step"

AddressFormatter = Callable[[ChainClass, str], str]


@dataclass(frozen=True)
class TransferSummary:
    intent: TransferIntent
    total_fee: int
    total_debit: int
    steps: Tuple[StepDefinition, ...]
    resume_step: int
    source_display: str
    destination_display: str

    def lines(self) -> Tuple[str, ...]:
        intent = self.intent
        lines = ["this operation is going to:"]
        if intent.direction == Direction.SEND_OUT:
            lines.append(
                f"- send {format_display(intent.amount)} from {self.source_display} "
                f"to target address {self.destination_display}"
            )
            lines.append(
                f"- take a fee of {format_display(self.total_fee)} "
                f"from source address {self.source_display}"
            )
            lines.append(f"- debit a total of {format_display(self.total_debit)}")
        else:
            lines.append(
                f"- receive {format_display(intent.amount)} "
                f"at target address {self.destination_display}"
            )
            lines.append(
                f"- consume {format_display(self.total_fee)} in fees prepaid by the sender"
            )
        for step in self.steps[self.resume_step:]:
            lines.append(f"- step {step.index}: {step.description}")
        return tuple(lines)


@dataclass(frozen=True)
class TransferOutcome:
    state: MachineState
    cursor: int
    summary: TransferSummary
    results: Tuple[StepResult, ...]
    transitions: Tuple[Transition, ...]
    resume_step: Optional[int] = None

    @property
    def ambiguous(self) -> bool:
        return bool(self.results) and self.results[-1].outcome == StepPhase.TIMEOUT_PENDING_UNKNOWN

    def report(self) -> Tuple[str, ...]:
        intent = self.summary.intent
        lines = [
            f"transfer {intent.direction.value} to {intent.destination.alias}-Chain: "
            f"{self.state.value}",
            f"- amount {format_display(intent.amount)}, fee {format_display(self.summary.total_fee)}",
            f"- from {self.summary.source_display}",
            f"- to {self.summary.destination_display}",
        ]
        for result in self.results:
            lines.append(f"- step {result.step_index} {result.description}: {result.outcome.value}")

        if self.state == MachineState.ABORTED:
            lines.append("Cancelled")
        if self.state == MachineState.FAILED:
            failed = self.results[-1]
            lines.append(f"ERROR: {failed.error}")
            if not failed.submitted:
                lines.append(f"ERROR: step {failed.step_index} was not submitted to the ledger")
            elif failed.retry_safe:
                lines.append(
                    f"ERROR: step {failed.step_index} was refused by the ledger; nothing was applied"
                )
            if intent.direction == Direction.RECEIVE_IN:
                lines.append(
                    "ERROR: restart from this step by using the same command with extra "
                    f"arguments: {RESUME_FLAG} {self.resume_step}"
                )
            else:
                lines.append("ERROR: restart from this step by using the same command")
            if self.ambiguous:
                lines.append(
                    f"WARNING: the outcome of transaction {failed.operation_id} is unknown. "
                    "Check it on the ledger before resuming; if it was accepted, "
                    f"the next step is {self.resume_step + 1}."
                )
        return tuple(lines)


class TransferStateMachine:
    """Sequences a transfer plan through the step executor.

    The cursor advances only when a step is acknowledged. Any other outcome
    stops the run in FAILED with the cursor of the failed step as the resume
    value; steps are never retried automatically.
    """

    def __init__(
        self,
        config: TransferConfig,
        executor: StepExecutor,
        confirm: Callable[[TransferSummary], bool],
        notify: Optional[Callable[[str], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        address_formatter: Optional[AddressFormatter] = None,
        planner: Optional[TransferPlanner] = None,
    ) -> None:
        self._config = config
        self._executor = executor
        self._confirm = confirm
        self._notify = notify or (lambda line: None)
        self._sleep = sleep
        self._format_address = address_formatter or (lambda chain, address: address)
        self._planner = planner or TransferPlanner()
        self._state = MachineState.IDLE

    @property
    def state(self) -> MachineState:
        return self._state

    def summarize(self, intent: TransferIntent, resume_step: int = 0) -> TransferSummary:
        validate_resume_step(intent.direction, intent.destination, resume_step)
        return self._summarize(self._planner.plan(intent), resume_step)

    def run(
        self,
        intent: TransferIntent,
        signing_context: SigningContext,
        resume_step: int = 0,
    ) -> TransferOutcome:
        validate_resume_step(intent.direction, intent.destination, resume_step)
        plan = self._planner.plan(intent)
        summary = self._summarize(plan, resume_step)

        cursor = resume_step
        transitions: List[Transition] = []
        results: List[StepResult] = []
        self._enter(transitions, MachineState.IDLE, cursor)

        for line in summary.lines():
            self._notify(line)

        if not self._config.skip_confirmation and not self._confirm(summary):
            self._enter(transitions, MachineState.ABORTED, cursor)
            return self._outcome(summary, cursor, results, transitions)

        for step in plan.steps[resume_step:]:
            if results:
                self._sleep(self._config.settle_delay_seconds)

            self._enter(transitions, MachineState.STEP_IN_FLIGHT, cursor)
            result = self._executor.execute(step, signing_context)
            results.append(result)

            if not result.acknowledged:
                self._enter(transitions, MachineState.FAILED, cursor)
                return self._outcome(summary, cursor, results, transitions, resume_step=cursor)

            cursor += 1
            if cursor == plan.terminal_step:
                self._enter(transitions, MachineState.SETTLED, cursor)
            else:
                self._enter(transitions, MachineState.STEP_COMPLETE, cursor)

        return self._outcome(summary, cursor, results, transitions)

    def _summarize(self, plan: TransferPlan, resume_step: int) -> TransferSummary:
        intent = plan.intent
        if intent.direction == Direction.SEND_OUT:
            source_chain = ChainClass.PRIMARY
        else:
            source_chain = ChainClass.SECONDARY
        return TransferSummary(
            intent=intent,
            total_fee=plan.total_fee,
            total_debit=plan.total_debit,
            steps=plan.steps,
            resume_step=resume_step,
            source_display=self._format_address(source_chain, intent.source_address),
            destination_display=self._format_address(intent.destination, intent.destination_address),
        )

    def _enter(self, transitions: List[Transition], state: MachineState, cursor: int) -> None:
        self._state = state
        transitions.append(Transition(state=state, cursor=cursor))
        logger.debug(f"Transfer state {state.value} (cursor {cursor})")

    def _outcome(
        self,
        summary: TransferSummary,
        cursor: int,
        results: List[StepResult],
        transitions: List[Transition],
        resume_step: Optional[int] = None,
    ) -> TransferOutcome:
        outcome = TransferOutcome(
            state=self._state,
            cursor=cursor,
            summary=summary,
            results=tuple(results),
            transitions=tuple(transitions),
            resume_step=resume_step,
        )
        for line in outcome.report():
            self._notify(line)
        return outcome
