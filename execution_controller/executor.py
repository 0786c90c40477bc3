"""Builds, signs and submits exactly one ledger operation per call."""

from typing import List, Mapping, Optional

from loguru import logger

from execution_adapter.primary_network.client import ChainClient
from execution_adapter.primary_network.models import SignedOperation, UnsignedOperation
from transfer_engine.errors import Rejected, SignerUnavailable, TimeoutPendingUnknown
from transfer_engine.models import ChainClass, StepDefinition, StepKind
from wallet_core.models import SigningContext

from .modes import StepPhase, StepResult


class StepExecutor:
    """Runs one step through Built -> Signed -> Submitted -> outcome.

    Chain and signer errors are folded into the returned ``StepResult``;
    nothing is retried here.
    """

    def __init__(self, clients: Mapping[ChainClass, ChainClient], request_timeout: float) -> None:
        self._clients = clients
        self._request_timeout = request_timeout

    def execute(self, step: StepDefinition, signing_context: SigningContext) -> StepResult:
        phases: List[StepPhase] = []
        client = self._clients[step.chain]

        try:
            unsigned = self._build(client, step, signing_context)
        except (Rejected, ValueError) as exc:
            return self._finish(step, phases, StepPhase.REJECTED, error=f"error building tx: {exc}")
        phases.append(StepPhase.BUILT)

        if signing_context.authority.is_hardware:
            logger.info(f"Please sign '{step.description}' on the hardware device")
        try:
            signature = signing_context.sign(step.chain, unsigned.to_bytes())
        except SignerUnavailable as exc:
            return self._finish(
                step, phases, StepPhase.SIGNER_UNAVAILABLE, error=f"error signing tx: {exc}"
            )
        phases.append(StepPhase.SIGNED)

        signed = SignedOperation(unsigned=unsigned, signature=signature)
        logger.info(f"Issuing {step.description}")
        phases.append(StepPhase.SUBMITTED)
        try:
            receipt = client.submit(signed, timeout=self._request_timeout)
        except TimeoutPendingUnknown as exc:
            return self._finish(
                step,
                phases,
                StepPhase.TIMEOUT_PENDING_UNKNOWN,
                operation_id=signed.operation_id,
                error=f"timeout issuing/verifying tx with ID {signed.operation_id}: {exc}",
            )
        except Rejected as exc:
            return self._finish(
                step,
                phases,
                StepPhase.REJECTED,
                operation_id=signed.operation_id,
                error=f"error issuing tx with ID {signed.operation_id}: {exc}",
            )
        except Exception as exc:
            # Anything else after submission leaves the ledger state unknown.
            logger.exception(f"Unexpected error submitting {step.description}")
            return self._finish(
                step,
                phases,
                StepPhase.TIMEOUT_PENDING_UNKNOWN,
                operation_id=signed.operation_id,
                error=f"error verifying tx with ID {signed.operation_id}: {exc!r}",
            )

        logger.debug(f"{step.description} is {receipt.status.value} on the {step.chain.alias}-Chain")
        return self._finish(step, phases, StepPhase.ACKNOWLEDGED, operation_id=receipt.operation_id)

    def _build(
        self, client: ChainClient, step: StepDefinition, signing_context: SigningContext
    ) -> UnsignedOperation:
        if step.kind == StepKind.EXPORT:
            return client.build_export(
                destination=step.counterpart,
                amount=step.amount,
                owner=step.owner,
                payer=signing_context.address,
            )
        if step.kind == StepKind.IMPORT:
            return client.build_import(source=step.counterpart, owner=step.owner, amount=step.amount)
        raise ValueError(f"Unsupported step kind: {step.kind}")

    def _finish(
        self,
        step: StepDefinition,
        phases: List[StepPhase],
        outcome: StepPhase,
        operation_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> StepResult:
        phases.append(outcome)
        if outcome == StepPhase.ACKNOWLEDGED:
            logger.info(f"Step {step.index} ({step.description}) acknowledged: {operation_id}")
        else:
            logger.error(f"Step {step.index} ({step.description}) ended {outcome.value}: {error}")
        return StepResult(
            step_index=step.index,
            description=step.description,
            phases=tuple(phases),
            operation_id=operation_id,
            error=error,
        )
