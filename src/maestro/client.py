"""
Model client - a single Anthropic handle shared by the three model roles.

Each role maps to a fixed model and output budget. The client is built once
per run from a credential and the role settings, then passed by reference to
the planner, the sub-agent executor and the refiner.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import anthropic

from .errors import ModelError

logger = logging.getLogger(__name__)


class ModelRole(str, Enum):
	"""The three roles a model call can play in a run."""
	PLANNING = "planning"
	EXECUTING = "executing"
	REFINING = "refining"


@dataclass(frozen=True)
class RoleSettings:
	"""Model selection and output budget for one role."""
	model: str
	max_tokens: int


class ModelInvoker(Protocol):
	"""Anything that can turn a role-specific prompt into text."""

	async def invoke(
		self,
		role: ModelRole,
		main_text: str,
		side_context: Optional[str] = None,
		max_output_tokens: Optional[int] = None,
	) -> str:
		...


class ModelClient:
	"""
	Calls the Anthropic Messages API on behalf of a role.

	Every failure (authentication, rate limit, network, timeout, a response
	without text) surfaces as ModelError. Retries are disabled.
	"""

	def __init__(
		self,
		api_key: str,
		role_settings: dict[ModelRole, RoleSettings],
		timeout: float = 120.0,
		base_url: Optional[str] = None,
	):
		self.api_key = api_key
		self.role_settings = dict(role_settings)
		self.timeout = timeout
		self.base_url = base_url
		self._client: Optional[anthropic.AsyncAnthropic] = None

	@classmethod
	def from_config(cls, config, api_key: str) -> "ModelClient":
		"""Build a client from a Config and a resolved credential."""
		return cls(
			api_key=api_key,
			role_settings={role: config.role_settings(role) for role in ModelRole},
			timeout=config.request_timeout,
		)

	def _get_client(self) -> anthropic.AsyncAnthropic:
		if self._client is None:
			kwargs = {
				"api_key": self.api_key,
				"timeout": self.timeout,
				"max_retries": 0,
			}
			if self.base_url:
				kwargs["base_url"] = self.base_url
			self._client = anthropic.AsyncAnthropic(**kwargs)
		return self._client

	async def invoke(
		self,
		role: ModelRole,
		main_text: str,
		side_context: Optional[str] = None,
		max_output_tokens: Optional[int] = None,
	) -> str:
		"""
		Send one user message for a role and return the response text.

		Args:
			role: Which role is calling; selects model and default budget
			main_text: The user message content
			side_context: Optional system prompt, kept apart from the message
			max_output_tokens: Override for the role's token budget

		Returns:
			Concatenated text blocks of the response

		Raises:
			ModelError: on any failure of the call
		"""
		settings = self.role_settings.get(role)
		if settings is None:
			raise ModelError(f"No model configured for role {role.value}", role=role.value)

		request_kwargs = {
			"model": settings.model,
			"max_tokens": max_output_tokens or settings.max_tokens,
			"messages": [
				{
					"role": "user",
					"content": [{"type": "text", "text": main_text}],
				}
			],
		}
		if side_context:
			request_kwargs["system"] = side_context

		logger.debug(
			f"Invoking {settings.model} for {role.value} "
			f"({len(main_text)} chars, context {len(side_context or '')} chars)"
		)

		try:
			response = await self._get_client().messages.create(**request_kwargs)
		except anthropic.APIError as e:
			raise ModelError(f"{type(e).__name__}: {e}", role=role.value) from e

		return self._extract_text(role, response)

	@staticmethod
	def _extract_text(role: ModelRole, response) -> str:
		"""Join the text blocks of a Messages API response."""
		parts = [
			block.text
			for block in (getattr(response, "content", None) or [])
			if getattr(block, "type", None) == "text"
		]
		if not parts:
			raise ModelError("Response contained no text content", role=role.value)
		return "".join(parts)

	async def close(self) -> None:
		"""Release the underlying HTTP client."""
		if self._client is not None:
			await self._client.close()
			self._client = None
