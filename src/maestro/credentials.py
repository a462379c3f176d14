"""Credential storage backed by secrets.json in the config directory."""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from .errors import NoCredentialError

logger = logging.getLogger(__name__)

ANTHROPIC_KEY_NAME = "anthropic"


def _load_secrets(secrets_file: Path) -> dict:
	"""Load secrets from file."""
	if not secrets_file.exists():
		return {"keys": {}, "last_updated": None}
	try:
		with open(secrets_file, "r") as f:
			data = json.load(f)
	except (json.JSONDecodeError, IOError) as e:
		logger.warning(f"Could not read {secrets_file}: {e}")
		return {"keys": {}, "last_updated": None}
	if not isinstance(data, dict) or not isinstance(data.get("keys", {}), dict):
		logger.warning(f"Ignoring malformed {secrets_file}")
		return {"keys": {}, "last_updated": None}
	return data


def _save_secrets(secrets_file: Path, data: dict) -> None:
	"""Save secrets to file, readable by the owner only."""
	data["last_updated"] = datetime.now().isoformat()
	secrets_file.parent.mkdir(parents=True, exist_ok=True)
	with open(secrets_file, "w") as f:
		json.dump(data, f, indent=2)
	os.chmod(secrets_file, 0o600)


class CredentialStore:
	"""Reads and writes a single named API key in secrets.json."""

	def __init__(self, secrets_file: Path, key_name: str = ANTHROPIC_KEY_NAME):
		self.secrets_file = Path(secrets_file)
		self.key_name = key_name

	def get(self) -> Optional[str]:
		"""Return the stored key, or None if missing or inactive."""
		keys = _load_secrets(self.secrets_file).get("keys", {})
		secret = keys.get(self.key_name)
		if not secret:
			return None
		# Handle legacy format where value is a plain string
		if isinstance(secret, str):
			return secret
		if not isinstance(secret, dict):
			return None
		if not secret.get("active", True):
			return None
		key = secret.get("key")
		return key if isinstance(key, str) and key else None

	def set(self, value: str) -> None:
		"""Store the key, replacing any previous value."""
		data = _load_secrets(self.secrets_file)
		data.setdefault("keys", {})[self.key_name] = {
			"key": value,
			"active": True,
			"notes": "",
		}
		_save_secrets(self.secrets_file, data)
		logger.info(f"Saved '{self.key_name}' credential to {self.secrets_file}")


def resolve_credential(override: Optional[str], store: CredentialStore) -> str:
	"""
	Pick the credential for a run.

	An explicit override wins and is persisted for future runs. Otherwise the
	stored value is used and nothing is written.

	Raises:
		NoCredentialError: neither an override nor a stored value exists
	"""
	override = override.strip() if override else None
	if override:
		try:
			store.set(override)
		except OSError as e:
			logger.error(f"Failed to persist credential: {e}")
		return override

	stored = store.get()
	if stored:
		return stored

	raise NoCredentialError(
		"No API key available. Pass one with --api-key; it will be remembered for later runs."
	)
