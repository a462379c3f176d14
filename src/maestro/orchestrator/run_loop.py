"""
RunLoop - drives the planner and the sub-agent in alternation.

State machine:
	PLANNING -> EXECUTING -> PLANNING -> ... -> TERMINATED

A round either appends exactly one Exchange or ends the run. Whatever the
cause of termination, the refiner is attempted once over the results
gathered so far, except after cancellation, which stops all model calls.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from ..client import ModelClient, ModelInvoker
from ..config import Config, DEFAULT_MAX_ROUNDS, load_config
from ..credentials import CredentialStore, resolve_credential
from ..errors import ConfigError
from ..models import Complete, Exchange, ExchangeHistory, Failed, TerminationCause
from ..progress import ProgressNotifier, ProgressSink
from ..transcript import RunTranscript, STOP_REASONS
from .executor import SubAgentExecutor
from .planner import Orchestrator
from .refiner import Refiner

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Config, str], ModelInvoker]


class RunState(str, Enum):
	"""Where the loop currently is."""
	IDLE = "idle"
	PLANNING = "planning"
	EXECUTING = "executing"
	REFINING = "refining"
	TERMINATED = "terminated"


class RunLoop:
	"""
	Coordinates one run: plan, execute, repeat, then refine.

	The exchange history is owned by a single run() call and discarded when
	it returns. Cancellation is honoured at the next model-call boundary. A
	completion verdict or a failure that arrives with a cancellation pending
	still decides the termination cause.
	"""

	def __init__(
		self,
		orchestrator: Orchestrator,
		executor: SubAgentExecutor,
		refiner: Refiner,
		max_rounds: int = DEFAULT_MAX_ROUNDS,
		notifier: Optional[ProgressNotifier] = None,
		cancel_event: Optional[asyncio.Event] = None,
	):
		if max_rounds < 1:
			raise ConfigError(f"max_rounds must be at least 1, got {max_rounds}")
		self.orchestrator = orchestrator
		self.executor = executor
		self.refiner = refiner
		self.max_rounds = max_rounds
		self.notifier = notifier or ProgressNotifier()
		self._cancel_event = cancel_event or asyncio.Event()
		self.state = RunState.IDLE

	@classmethod
	def build(
		cls,
		client: ModelInvoker,
		max_rounds: int = DEFAULT_MAX_ROUNDS,
		sink: Optional[ProgressSink] = None,
		cancel_event: Optional[asyncio.Event] = None,
	) -> "RunLoop":
		"""Wire the three roles to one shared client and progress sink."""
		notifier = ProgressNotifier(sink)
		return cls(
			orchestrator=Orchestrator(client, notifier),
			executor=SubAgentExecutor(client, notifier),
			refiner=Refiner(client, notifier),
			max_rounds=max_rounds,
			notifier=notifier,
			cancel_event=cancel_event,
		)

	def cancel(self) -> None:
		"""Ask the loop to stop before its next model call."""
		if not self._cancel_event.is_set():
			logger.info("Cancellation requested")
		self._cancel_event.set()

	@property
	def cancelled(self) -> bool:
		return self._cancel_event.is_set()

	async def run(self, objective: str) -> RunTranscript:
		"""
		Drive one objective to termination.

		Args:
			objective: The goal to accomplish (non-empty)

		Returns:
			RunTranscript with every exchange and the refined output (or a
			marker saying why there is none)
		"""
		if not objective or not objective.strip():
			raise ValueError("objective must be a non-empty string")

		history = ExchangeHistory()
		cause: Optional[TerminationCause] = None
		completion_note: Optional[str] = None
		failure_reason: Optional[str] = None

		while cause is None:
			if self.cancelled:
				cause = TerminationCause.CANCELLED
				break
			if len(history) >= self.max_rounds:
				logger.warning(f"Stopping after {len(history)} rounds (max_rounds={self.max_rounds})")
				cause = TerminationCause.MAX_ROUNDS
				break

			self.state = RunState.PLANNING
			outcome = await self.orchestrator.plan(objective, history.results())

			if isinstance(outcome, Failed):
				cause = TerminationCause.FAILURE
				failure_reason = outcome.error
				break
			if isinstance(outcome, Complete):
				cause = TerminationCause.COMPLETION
				completion_note = outcome.final_note or None
				break

			if self.cancelled:
				cause = TerminationCause.CANCELLED
				break

			self.state = RunState.EXECUTING
			result = await self.executor.execute(outcome.instruction, history.summaries())

			if isinstance(result, Failed):
				cause = TerminationCause.FAILURE
				failure_reason = result.error
				break

			history.append(Exchange(instruction=outcome.instruction, result=result))
			logger.debug(f"Round {len(history)} complete")

		logger.info(f"Run terminated by {cause.value} after {len(history)} exchange(s)")
		if cause != TerminationCause.COMPLETION:
			reason = STOP_REASONS[cause]
			self.notifier.notify(f"Run stopped early: {reason}.")

		final_artifact: Optional[str] = None
		refinement_error: Optional[str] = None
		if cause != TerminationCause.CANCELLED:
			self.state = RunState.REFINING
			refined = await self.refiner.refine(objective, history.results())
			if isinstance(refined, Failed):
				refinement_error = refined.error
				logger.error("Failed to generate the refined final output")
			else:
				final_artifact = refined

		self.state = RunState.TERMINATED
		return RunTranscript(
			objective=objective,
			exchanges=history.snapshot(),
			termination=cause,
			final_artifact=final_artifact,
			completion_note=completion_note,
			failure_reason=failure_reason,
			refinement_error=refinement_error,
		)


async def run(
	objective: str,
	credential_override: Optional[str] = None,
	*,
	config: Optional[Config] = None,
	store: Optional[CredentialStore] = None,
	sink: Optional[ProgressSink] = None,
	cancel_event: Optional[asyncio.Event] = None,
	client_factory: ClientFactory = ModelClient.from_config,
) -> RunTranscript:
	"""
	Run an objective end to end.

	Resolves the credential (an explicit override is persisted; otherwise the
	stored one is used), builds one model client for the run and drives a
	RunLoop to completion.

	Raises:
		ValueError: the objective is empty
		NoCredentialError: no credential could be resolved; no call is made
	"""
	if not objective or not objective.strip():
		raise ValueError("Please provide an objective.")
	objective = objective.strip()

	config = config or load_config()
	store = store or CredentialStore(config.secrets_file)
	api_key = resolve_credential(credential_override, store)

	client = client_factory(config, api_key)
	loop = RunLoop.build(client, max_rounds=config.max_rounds, sink=sink, cancel_event=cancel_event)

	try:
		return await loop.run(objective)
	finally:
		close = getattr(client, "close", None)
		if close is not None:
			await close()
