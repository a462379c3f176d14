"""SubAgentExecutor - the execution role."""

import logging
from typing import Optional, Sequence

from ..client import ModelInvoker, ModelRole
from ..errors import ModelError
from ..models import Failed
from ..progress import ProgressNotifier
from ..prompts import build_subagent_context

logger = logging.getLogger(__name__)


class SubAgentExecutor:
	"""
	Carries out a single sub-task.

	The instruction is sent as the message; summaries of earlier sub-tasks
	travel separately as system context.
	"""

	def __init__(
		self,
		client: ModelInvoker,
		notifier: Optional[ProgressNotifier] = None,
		max_output_tokens: Optional[int] = None,
	):
		self.client = client
		self.notifier = notifier or ProgressNotifier()
		self.max_output_tokens = max_output_tokens

	async def execute(self, instruction: str, prior_summaries: Sequence[str]) -> str | Failed:
		"""Run one sub-task; returns the result text or Failed."""
		context = build_subagent_context(prior_summaries)

		try:
			result = await self.client.invoke(
				ModelRole.EXECUTING,
				instruction,
				side_context=context or None,
				max_output_tokens=self.max_output_tokens,
			)
		except ModelError as e:
			logger.error(f"Error in sub-agent: {e}")
			return Failed(role=ModelRole.EXECUTING.value, error=str(e))

		self.notifier.notify(
			f"Sub-agent result:\n\n{result}\n\nTask completed, sending result to the orchestrator 👇"
		)
		return result
