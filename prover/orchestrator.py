"""
Proof Orchestrator
==================

[LIFECYCLE] One proof run as a state machine:

    idle -> initializing -> generating -> idle (proof ready)
         -> calldata -> previewing -> submitting -> complete

    error is reachable from every non-terminal step. reset() returns to idle
    from anywhere and discards everything the run produced.

[ORDERING] generate_proof -> prepare_calldata (+ speculative nullifier check)
-> submit_on_chain (network guard, immediate nullifier check, submission).

[FAILURES] Failures of external collaborators are caught here and turn the
run into `error`, keeping a display message and a typed ErrorKind. Calling an
operation from the wrong step, or while another one is in flight, raises
LifecycleError instead.

[STALE RESULTS] Started external work cannot be interrupted. Every operation
captures the run generation; reset() bumps it and late results are dropped.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union

from core.errors import (
    ChainQueryError,
    ErrorKind,
    LifecycleError,
    StageError,
    ValidationError,
    ZkGateError,
)
from core.events import PROOF_STEP, EventBus, event_bus
from core.types import (
    CalldataResult,
    Credential,
    PredicateType,
    ProofParameters,
    ProofResult,
    ReuseCheck,
    ReuseStatus,
    SubmitResult,
)
from prover.calldata import CalldataBuilder
from prover.credentials import CredentialValidator
from prover.runtime import CircuitRuntime, ProvingBackend
from prover.signals import DEFAULT_LAYOUT_VERSION, PublicOutputs, parse_public_outputs
from prover.witness import WitnessMapper
from chain.nullifier import NullifierGuard
from chain.submitter import ProofSubmitter
from chain.wallet import WalletHandle, WalletNetworkGuard

logger = logging.getLogger(__name__)


class ProofStep(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    GENERATING = "generating"
    CALLDATA = "calldata"
    PREVIEWING = "previewing"
    SUBMITTING = "submitting"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class ProofState:
    """Everything one run has produced so far."""
    step: ProofStep = ProofStep.IDLE
    predicate_type: Optional[PredicateType] = None
    proof_result: Optional[ProofResult] = None
    public_outputs: Optional[PublicOutputs] = None
    calldata_result: Optional[CalldataResult] = None
    reuse_check: Optional[ReuseCheck] = None
    submit_result: Optional[SubmitResult] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def proof_ready(self) -> bool:
        return self.step is ProofStep.IDLE and self.proof_result is not None


class _Stale(Exception):
    """Raised internally when a reset happened during an await."""


class ProofOrchestrator:
    """
    Drives credential -> proof -> calldata -> registry submission.

    [USAGE]
        orchestrator = ProofOrchestrator(runtime, backend, builder,
                                         nullifier_guard=guard,
                                         network_guard=WalletNetworkGuard(config.network),
                                         submitter=submitter)
        proof = await orchestrator.generate_proof(raw_credential, PredicateType.AGE, params)
        calldata = await orchestrator.prepare_calldata()
        if orchestrator.state.reuse_check.may_submit:
            result = await orchestrator.submit_on_chain(wallet)
    """

    def __init__(
        self,
        runtime: CircuitRuntime,
        backend: ProvingBackend,
        calldata_builder: CalldataBuilder,
        nullifier_guard: Optional[NullifierGuard] = None,
        network_guard: Optional[WalletNetworkGuard] = None,
        submitter: Optional[ProofSubmitter] = None,
        validator: Optional[CredentialValidator] = None,
        witness_mapper: Optional[WitnessMapper] = None,
        events: Optional[EventBus] = None,
        layout_version: str = DEFAULT_LAYOUT_VERSION,
    ):
        self.runtime = runtime
        self.backend = backend
        self.calldata_builder = calldata_builder
        self.nullifier_guard = nullifier_guard
        self.network_guard = network_guard
        self.submitter = submitter
        self.validator = validator or CredentialValidator()
        self.witness_mapper = witness_mapper or WitnessMapper()
        self.events = events or event_bus
        self.layout_version = layout_version

        self._state = ProofState()
        self._generation = 0
        self._busy = False

    @property
    def state(self) -> ProofState:
        return self._state

    @property
    def step(self) -> ProofStep:
        return self._state.step

    # ========================================================================
    # Transitions
    # ========================================================================

    def _begin(self, operation: str, *allowed: ProofStep) -> int:
        if self._busy:
            raise LifecycleError(f"Cannot {operation}: another operation is in progress")
        if self._state.step not in allowed:
            raise LifecycleError(f"Cannot {operation} from step '{self._state.step.value}'")
        self._busy = True
        return self._generation

    def _end(self, generation: int) -> None:
        if generation == self._generation:
            self._busy = False

    def _check(self, generation: int) -> None:
        if generation != self._generation:
            raise _Stale()

    def _set_step(self, step: ProofStep, generation: int) -> None:
        self._check(generation)
        self._state.step = step
        self._notify()

    def _fail(self, generation: int, message: str, kind: ErrorKind) -> None:
        if generation != self._generation:
            return
        self._state.step = ProofStep.ERROR
        self._state.error = message
        self._state.error_kind = kind
        logger.error(f"[PROOF] {message}")
        self._notify()

    def _notify(self) -> None:
        payload = {
            "step": self._state.step.value,
            "error": self._state.error,
            "error_kind": self._state.error_kind.value if self._state.error_kind else None,
        }
        self.events.publish_nowait(PROOF_STEP, payload)

    def reset(self) -> None:
        """Return to idle and drop all run-scoped results. In-flight work is ignored."""
        self._generation += 1
        self._busy = False
        self._state = ProofState()
        logger.debug("[PROOF] Reset")
        self._notify()

    # ========================================================================
    # Operations
    # ========================================================================

    async def generate_proof(
        self,
        credential: Union[Mapping[str, Any], Credential],
        predicate_type: Union[PredicateType, str],
        params: ProofParameters,
    ) -> Optional[ProofResult]:
        """
        Validate the credential, execute the circuit and prove.

        Returns the ProofResult, or None if the run failed (see state.error)
        or was reset meanwhile.
        """
        predicate = PredicateType.parse(predicate_type)
        generation = self._begin("generate a proof", ProofStep.IDLE)
        try:
            # A new run drops whatever the previous one held
            self._state = ProofState(predicate_type=predicate)
            raw = credential.to_dict() if isinstance(credential, Credential) else credential
            validation = self.validator.validate(raw, predicate)
            if not validation.valid:
                raise ValidationError(validation.errors)
            parsed = Credential.from_dict(dict(raw))

            self._set_step(ProofStep.INITIALIZING, generation)
            await self.runtime.initialize()

            self._set_step(ProofStep.GENERATING, generation)
            inputs = self.witness_mapper.map(parsed, predicate, params)

            witness = await self.runtime.execute(predicate, inputs)
            self._check(generation)
            started = time.perf_counter()
            raw_proof = await self.backend.prove(predicate, witness)
            self._check(generation)
            elapsed_ms = (time.perf_counter() - started) * 1000

            outputs = parse_public_outputs(raw_proof.public_signals, predicate, self.layout_version)
            result = ProofResult(
                proof=raw_proof.proof,
                public_signals=list(raw_proof.public_signals),
                proving_time_ms=elapsed_ms,
            )
            self._state.proof_result = result
            self._state.public_outputs = outputs
            self._set_step(ProofStep.IDLE, generation)
            logger.info(f"[PROOF] {predicate.label} proof generated in {elapsed_ms:.0f} ms")
            return result

        except _Stale:
            logger.debug("[PROOF] Discarding proof from a reset run")
            return None
        except ValidationError as e:
            self._fail(generation, str(e), e.kind)
            return None
        except Exception as e:
            kind = e.kind if isinstance(e, ZkGateError) else ErrorKind.STAGE
            self._fail(generation, f"{predicate.label} proof generation failed: {e}", kind)
            return None
        finally:
            self._end(generation)

    async def prepare_calldata(
        self,
        proof_result: Optional[ProofResult] = None,
        predicate_type: Optional[Union[PredicateType, str]] = None,
    ) -> Optional[CalldataResult]:
        """Build verifier calldata and run the speculative nullifier check."""
        generation = self._begin("prepare calldata", ProofStep.IDLE)
        try:
            proof_result = proof_result or self._state.proof_result
            if predicate_type is not None:
                predicate = PredicateType.parse(predicate_type)
            else:
                predicate = self._state.predicate_type
            if proof_result is None or predicate is None:
                raise LifecycleError("Cannot prepare calldata: no proof has been generated")

            self._state.proof_result = proof_result
            self._state.predicate_type = predicate
            self._set_step(ProofStep.CALLDATA, generation)
            calldata_result = await self.calldata_builder.build(proof_result, predicate)
            self._check(generation)

            self._state.calldata_result = calldata_result
            self._set_step(ProofStep.PREVIEWING, generation)

            if self.nullifier_guard is not None:
                self._state.reuse_check = await self._check_nullifier(calldata_result)
                self._check(generation)
            return calldata_result

        except _Stale:
            logger.debug("[PROOF] Discarding calldata from a reset run")
            return None
        except LifecycleError:
            raise
        except ZkGateError as e:
            self._fail(generation, str(e), e.kind)
            return None
        except Exception as e:
            self._fail(generation, f"Calldata preparation failed: {e}", ErrorKind.STAGE)
            return None
        finally:
            self._end(generation)

    async def submit_on_chain(
        self,
        wallet: WalletHandle,
        calldata_result: Optional[CalldataResult] = None,
    ) -> Optional[SubmitResult]:
        """
        Submit the previewed calldata to the registry.

        Returns None without submitting when the nullifier is already
        registered; the step stays `previewing` and state.reuse_check holds
        the conflicting record.
        """
        if self.network_guard is None or self.submitter is None:
            raise LifecycleError("Cannot submit: no network guard or submitter configured")
        generation = self._begin("submit", ProofStep.PREVIEWING)
        try:
            calldata_result = calldata_result or self._state.calldata_result
            if calldata_result is None:
                raise LifecycleError("Cannot submit: no calldata has been prepared")

            await self.network_guard.assert_correct_network(wallet)
            self._check(generation)

            if self.nullifier_guard is not None:
                check = await self._check_nullifier(calldata_result)
                self._check(generation)
                self._state.reuse_check = check
                if check.status is ReuseStatus.USED:
                    logger.warning("[PROOF] Nullifier already registered; submission skipped")
                    return None
                if check.status is ReuseStatus.ERROR:
                    raise ChainQueryError(f"Could not confirm the nullifier is unused: {check.error}")

            self._set_step(ProofStep.SUBMITTING, generation)
            submit_result = await self.submitter.submit(wallet, calldata_result)
            self._check(generation)

            self._state.submit_result = submit_result
            self._set_step(ProofStep.COMPLETE, generation)
            return submit_result

        except _Stale:
            logger.debug("[PROOF] Ignoring submission result from a reset run")
            return None
        except LifecycleError:
            raise
        except ZkGateError as e:
            self._fail(generation, str(e), e.kind)
            return None
        except Exception as e:
            self._fail(generation, f"Submission failed: {e}", ErrorKind.STAGE)
            return None
        finally:
            self._end(generation)

    async def verify_locally(
        self,
        proof_result: Optional[ProofResult] = None,
        predicate_type: Optional[Union[PredicateType, str]] = None,
    ) -> bool:
        """Check a proof with the proving backend. Does not change the step."""
        proof_result = proof_result or self._state.proof_result
        predicate = PredicateType.parse(predicate_type) if predicate_type else self._state.predicate_type
        if proof_result is None or predicate is None:
            raise LifecycleError("Cannot verify: no proof has been generated")
        try:
            valid = await self.backend.verify(predicate, proof_result.proof, proof_result.public_signals)
        except Exception as e:
            raise StageError(f"Proof verification failed: {e}", stage="verify") from e
        logger.info(f"[PROOF] Local verification: {'valid' if valid else 'invalid'}")
        return valid

    async def _check_nullifier(self, calldata_result: CalldataResult) -> ReuseCheck:
        if calldata_result.nullifier is None:
            return ReuseCheck(status=ReuseStatus.ERROR, error="nullifier not available from public signals")
        return await self.nullifier_guard.check_reuse(calldata_result.nullifier)
