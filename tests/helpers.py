"""Shared test fixtures and helpers for maestro tests."""

from typing import Optional

from maestro.client import ModelRole
from maestro.errors import ModelError


class ScriptedClient:
	"""Fake model client that replays scripted responses per role.

	A script entry that is an Exception instance is raised instead of
	returned. An exhausted script raises ModelError.
	"""

	def __init__(self, planning=(), executing=(), refining=()):
		self.scripts = {
			ModelRole.PLANNING: list(planning),
			ModelRole.EXECUTING: list(executing),
			ModelRole.REFINING: list(refining),
		}
		self.calls: list[dict] = []
		self.closed = False

	async def invoke(
		self,
		role: ModelRole,
		main_text: str,
		side_context: Optional[str] = None,
		max_output_tokens: Optional[int] = None,
	) -> str:
		self.calls.append({
			"role": role,
			"main_text": main_text,
			"side_context": side_context,
			"max_output_tokens": max_output_tokens,
		})
		script = self.scripts[role]
		if not script:
			raise ModelError("script exhausted", role=role.value)
		item = script.pop(0)
		if isinstance(item, Exception):
			raise item
		return item

	def calls_for(self, role: ModelRole) -> list[dict]:
		return [c for c in self.calls if c["role"] == role]

	async def close(self) -> None:
		self.closed = True


class RecordingSink:
	"""Progress sink that keeps every message."""

	def __init__(self):
		self.messages: list[str] = []

	def __call__(self, text: str) -> None:
		self.messages.append(text)


def failing_sink(text: str) -> None:
	raise RuntimeError("display went away")
