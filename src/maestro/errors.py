"""Exceptions raised by maestro."""

from typing import Optional


class MaestroError(Exception):
	"""Base exception for maestro errors."""
	pass


class ConfigError(MaestroError):
	"""Raised when a configuration value is invalid."""
	pass


class NoCredentialError(MaestroError):
	"""Raised when no API credential could be resolved for a run."""
	pass


class TranscriptError(MaestroError):
	"""Raised when a run transcript cannot be assembled or written."""
	pass


class ModelError(MaestroError):
	"""A single model invocation failed (auth, network, rate limit, bad payload)."""

	def __init__(self, message: str, role: Optional[str] = None):
		super().__init__(message)
		self.role = role

	def __str__(self) -> str:
		message = super().__str__()
		if self.role:
			return f"[{self.role}] {message}"
		return message
