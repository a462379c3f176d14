"""
Orchestrator - the planning role.

Given the objective and every sub-task result so far, asks the planning
model for either the next sub-task or a completion verdict.
"""

import logging
from typing import Optional, Sequence

from ..client import ModelInvoker, ModelRole
from ..errors import ModelError
from ..models import Complete, Failed, NextTask, PlanOutcome
from ..progress import ProgressNotifier
from ..prompts import build_orchestrator_prompt, parse_plan_response

logger = logging.getLogger(__name__)


class Orchestrator:
	"""Decomposes the objective one sub-task at a time and judges completion."""

	def __init__(
		self,
		client: ModelInvoker,
		notifier: Optional[ProgressNotifier] = None,
		max_output_tokens: Optional[int] = None,
	):
		self.client = client
		self.notifier = notifier or ProgressNotifier()
		self.max_output_tokens = max_output_tokens

	async def plan(self, objective: str, prior_results: Sequence[str]) -> PlanOutcome:
		"""
		Ask for the next step.

		Args:
			objective: The run's goal (non-empty)
			prior_results: Results of all earlier sub-tasks, in order

		Returns:
			Complete, NextTask, or Failed if the model call failed
		"""
		if not objective or not objective.strip():
			raise ValueError("objective must be a non-empty string")

		self.notifier.notify(f"Calling the orchestrator for your objective: {objective}")
		prompt = build_orchestrator_prompt(objective, prior_results)

		try:
			response = await self.client.invoke(
				ModelRole.PLANNING,
				prompt,
				max_output_tokens=self.max_output_tokens,
			)
		except ModelError as e:
			logger.error(f"Error in orchestrator: {e}")
			return Failed(role=ModelRole.PLANNING.value, error=str(e))

		outcome = parse_plan_response(response)
		if isinstance(outcome, NextTask):
			self.notifier.notify(f"Orchestrator: sending task to the sub-agent 👇\n\n{response}")
		elif isinstance(outcome, Complete):
			logger.info("Orchestrator reported the objective complete")
			self.notifier.notify(f"Orchestrator: the objective is complete.\n\n{outcome.final_note}")
		return outcome
