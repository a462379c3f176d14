"""Refiner - the consolidation role."""

import logging
from typing import Optional, Sequence

from ..client import ModelInvoker, ModelRole
from ..errors import ModelError
from ..models import Failed
from ..progress import ProgressNotifier
from ..prompts import build_refiner_prompt

logger = logging.getLogger(__name__)


class Refiner:
	"""Merges every sub-task result into one cohesive final artifact."""

	def __init__(
		self,
		client: ModelInvoker,
		notifier: Optional[ProgressNotifier] = None,
		max_output_tokens: Optional[int] = None,
	):
		self.client = client
		self.notifier = notifier or ProgressNotifier()
		self.max_output_tokens = max_output_tokens

	async def refine(self, objective: str, results: Sequence[str]) -> str | Failed:
		"""
		Consolidate sub-task results.

		Args:
			objective: The run's goal
			results: Sub-task results in the order they were produced (may be empty)

		Returns:
			The final artifact text, or Failed if the model call failed
		"""
		self.notifier.notify("Calling the refiner to provide the refined final output for your objective:")
		prompt = build_refiner_prompt(objective, results)

		try:
			refined = await self.client.invoke(
				ModelRole.REFINING,
				prompt,
				max_output_tokens=self.max_output_tokens,
			)
		except ModelError as e:
			logger.error(f"Error in refiner: {e}")
			return Failed(role=ModelRole.REFINING.value, error=str(e))

		self.notifier.notify(f"Refinement complete ({len(results)} sub-task results consolidated).")
		self.notifier.notify(f"Final Output:\n\n{refined}")
		return refined
