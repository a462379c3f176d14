"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

from .client import ModelRole, RoleSettings
from .errors import ConfigError

APP_NAME = "maestro"
APP_AUTHOR = "maestro"

DEFAULT_PLANNING_MODEL = "claude-opus-4-20250514"
DEFAULT_EXECUTION_MODEL = "claude-3-5-haiku-20241022"
DEFAULT_MAX_ROUNDS = 25


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	secrets_file: Path = field(init=False)
	log_dir: Path = field(init=False)
	transcripts_dir: Path = field(init=False)

	# Per-role model selection
	planning_model: str = DEFAULT_PLANNING_MODEL
	planning_max_tokens: int = 2048
	execution_model: str = DEFAULT_EXECUTION_MODEL
	execution_max_tokens: int = 2048
	refining_model: str = DEFAULT_PLANNING_MODEL
	refining_max_tokens: int = 4096

	# Run behaviour
	max_rounds: int = DEFAULT_MAX_ROUNDS
	request_timeout: float = 120.0

	def __post_init__(self) -> None:
		self.secrets_file = self.config_dir / "secrets.json"
		self.log_dir = self.data_dir / "logs"
		self.transcripts_dir = self.data_dir / "transcripts"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)

	def validate(self) -> None:
		"""Raise ConfigError if any setting is out of range."""
		if self.max_rounds < 1:
			raise ConfigError(f"max_rounds must be at least 1, got {self.max_rounds}")
		if self.request_timeout <= 0:
			raise ConfigError(f"request_timeout must be positive, got {self.request_timeout}")
		for role in ModelRole:
			settings = self.role_settings(role)
			if not settings.model:
				raise ConfigError(f"No model configured for the {role.value} role")
			if settings.max_tokens < 1:
				raise ConfigError(
					f"{role.value} max_tokens must be at least 1, got {settings.max_tokens}"
				)

	def role_settings(self, role: ModelRole) -> RoleSettings:
		"""Model and token budget for a role."""
		if role == ModelRole.PLANNING:
			return RoleSettings(self.planning_model, self.planning_max_tokens)
		if role == ModelRole.EXECUTING:
			return RoleSettings(self.execution_model, self.execution_max_tokens)
		return RoleSettings(self.refining_model, self.refining_max_tokens)

	def to_dict(self) -> dict:
		"""Effective settings for display. Contains no secrets."""
		return {
			"config_dir": str(self.config_dir),
			"data_dir": str(self.data_dir),
			"secrets_file": str(self.secrets_file),
			"log_dir": str(self.log_dir),
			"transcripts_dir": str(self.transcripts_dir),
			"planning_model": self.planning_model,
			"planning_max_tokens": self.planning_max_tokens,
			"execution_model": self.execution_model,
			"execution_max_tokens": self.execution_max_tokens,
			"refining_model": self.refining_model,
			"refining_max_tokens": self.refining_max_tokens,
			"max_rounds": self.max_rounds,
			"request_timeout": self.request_timeout,
		}


PATH_FIELDS = {"config_dir", "data_dir"}
INT_FIELDS = {"planning_max_tokens", "execution_max_tokens", "refining_max_tokens", "max_rounds"}
FLOAT_FIELDS = {"request_timeout"}
STR_FIELDS = {"planning_model", "execution_model", "refining_model"}


def _coerce(key: str, val):
	"""Convert a raw toml/env value to the type of the matching field."""
	try:
		if key in PATH_FIELDS:
			return Path(os.path.expanduser(str(val)))
		if key in INT_FIELDS:
			return int(val)
		if key in FLOAT_FIELDS:
			return float(val)
		return str(val)
	except (TypeError, ValueError) as e:
		raise ConfigError(f"Invalid value for {key}: {val!r} ({e})") from e


def _apply_env_overrides(config: Config) -> Config:
	"""Apply MAESTRO_* environment variable overrides."""
	for attr in PATH_FIELDS | INT_FIELDS | FLOAT_FIELDS | STR_FIELDS:
		val = os.getenv(f"MAESTRO_{attr.upper()}")
		if val:
			setattr(config, attr, _coerce(attr, val))
	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	try:
		with open(toml_path, "rb") as f:
			data = tomllib.load(f)
	except tomllib.TOMLDecodeError as e:
		raise ConfigError(f"Invalid config.toml at {toml_path}: {e}") from e

	known = PATH_FIELDS | INT_FIELDS | FLOAT_FIELDS | STR_FIELDS
	for key, val in data.items():
		if key in known:
			setattr(config, key, _coerce(key, val))

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	# Env may relocate config_dir, which decides where config.toml is read from
	config = _apply_env_overrides(config)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.validate()
	config.ensure_dirs()
	return config
