"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "comms-orchestrator"
APP_AUTHOR = "comms-orchestrator"

DAY = 24 * 60 * 60


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	log_dir: Path = field(init=False)

	# Logging
	log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

	# Bounded histories: once `history_limit` is exceeded keep the newest `history_trim_to`
	history_limit: int = 1000
	history_trim_to: int = 500

	# TTL sweeps (seconds)
	cleanup_max_age: int = DAY
	collaboration_max_age: int = 7 * DAY
	handoff_max_age: int = 7 * DAY

	# Response shaping
	max_response_length: int = 2000
	terminal_width: int = 80
	max_section_depth: int = 3

	# Real-time progress sweep interval (seconds)
	realtime_interval: float = 5.0

	def __post_init__(self) -> None:
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


PATH_FIELDS = {"config_dir", "data_dir"}
INT_FIELDS = {
	"history_limit",
	"history_trim_to",
	"cleanup_max_age",
	"collaboration_max_age",
	"handoff_max_age",
	"max_response_length",
	"terminal_width",
	"max_section_depth",
}
FLOAT_FIELDS = {"realtime_interval"}


def _apply_env_overrides(config: Config) -> Config:
	"""Apply COMMS_ORCHESTRATOR_* environment variable overrides."""
	prefix = "COMMS_ORCHESTRATOR_"
	for attr in PATH_FIELDS | INT_FIELDS | FLOAT_FIELDS | {"log_level"}:
		val = os.getenv(prefix + attr.upper())
		if not val:
			continue
		if attr in PATH_FIELDS:
			setattr(config, attr, Path(val))
		elif attr in INT_FIELDS:
			setattr(config, attr, int(val))
		elif attr in FLOAT_FIELDS:
			setattr(config, attr, float(val))
		else:
			setattr(config, attr, val)
	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		if hasattr(config, key):
			if key in PATH_FIELDS:
				setattr(config, key, Path(os.path.expanduser(val)))
			else:
				setattr(config, key, val)

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
