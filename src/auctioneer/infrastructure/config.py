"""Configuration management with hierarchical loading."""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from auctioneer.infrastructure.logger import get_logger
from auctioneer.utils.durations import parse_duration_seconds

logger = get_logger(__name__)


def _validate_duration(v: str) -> str:
    parse_duration_seconds(v)
    return v


class KeywordAffinityRule(BaseModel):
    """Regex over task title + description, with points per agent id."""

    pattern: str
    scores: dict[str, int] = Field(default_factory=dict)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Reject patterns that do not compile."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid keyword pattern {v!r}: {e}") from e
        return v


def _default_category_affinity() -> dict[str, dict[str, int]]:
    return {
        "internal-dashboard": {"main": 8, "agent-4": 6},
        "portfolio-website": {"main": 9, "agent-4": 5},
        "kalshi-vol-arb": {"main": 7, "research-agent": 8},
    }


def _default_keyword_affinity() -> list[KeywordAffinityRule]:
    return [
        KeywordAffinityRule(
            pattern=r"dashboard|ui|component|analytics", scores={"main": 8, "agent-4": 5}
        ),
        KeywordAffinityRule(pattern=r"portfolio|github|readme|deploy", scores={"main": 9}),
        KeywordAffinityRule(
            pattern=r"trading|kalshi|strategy|market.making",
            scores={"research-agent": 9, "main": 5},
        ),
        KeywordAffinityRule(pattern=r"internship|job|apply|search", scores={"main": 10}),
        KeywordAffinityRule(
            pattern=r"research|knowledge|data|graph", scores={"research-agent": 9, "main": 5}
        ),
        KeywordAffinityRule(pattern=r"agent|task|orchestrat|auction", scores={"main": 9}),
        KeywordAffinityRule(
            pattern=r"summary|digest|analysis", scores={"research-agent": 8, "main": 5}
        ),
    ]


class AuctionConfig(BaseModel):
    """Scoring weights and bidding constraints."""

    priority_weights: dict[str, float] = Field(
        default_factory=lambda: {"urgent": 15.0, "high": 10.0, "medium": 5.0, "low": 2.0}
    )
    default_priority_weight: float = 3.0
    age_bonus_cap: float = Field(default=3.0, ge=0)
    age_saturation_days: float = Field(default=7.0, gt=0)
    idle_bonus: int = Field(default=5, ge=0)
    busy_penalty: int = Field(default=2, ge=0)
    base_score: int = Field(default=1, ge=1)
    availability_cap: int = Field(default=3, ge=1)
    recent_activity_window: str = "1h"
    default_limit: int = Field(default=20, ge=1)
    max_limit: int = Field(default=200, ge=1)
    category_affinity: dict[str, dict[str, int]] = Field(
        default_factory=_default_category_affinity
    )
    keyword_affinity: list[KeywordAffinityRule] = Field(default_factory=_default_keyword_affinity)

    @field_validator("recent_activity_window")
    @classmethod
    def validate_window(cls, v: str) -> str:
        return _validate_duration(v)

    @property
    def recent_activity_seconds(self) -> float:
        return parse_duration_seconds(self.recent_activity_window)


class AgentInstanceConfig(BaseModel):
    """One agent host: its roster file and its session index template.

    ``sessions_path`` must contain ``{agent_id}``.
    """

    config_path: str
    sessions_path: str

    @field_validator("sessions_path")
    @classmethod
    def validate_sessions_path(cls, v: str) -> str:
        if "{agent_id}" not in v:
            raise ValueError("sessions_path must contain the '{agent_id}' placeholder")
        return v

    def resolved_config_path(self) -> Path:
        return Path(self.config_path).expanduser()

    def resolved_sessions_path(self, agent_id: str) -> Path:
        return Path(self.sessions_path.replace("{agent_id}", agent_id)).expanduser()


def _default_instances() -> list[AgentInstanceConfig]:
    return [
        AgentInstanceConfig(
            config_path="~/.openclaw/openclaw.json",
            sessions_path="~/.openclaw/agents/{agent_id}/sessions/sessions.json",
        )
    ]


class AgentSourceConfig(BaseModel):
    """Where agent rosters and session indexes live."""

    instances: list[AgentInstanceConfig] = Field(default_factory=_default_instances)
    activity_window: str = "30m"
    default_context_tokens: int = Field(default=75_000, ge=0)

    @field_validator("activity_window")
    @classmethod
    def validate_window(cls, v: str) -> str:
        return _validate_duration(v)

    @property
    def activity_window_seconds(self) -> float:
        return parse_duration_seconds(self.activity_window)


class StreamConfig(BaseModel):
    """Agent stream timers."""

    debounce: str = "2s"
    poll_interval: str = "10s"
    heartbeat_interval: str = "30s"
    watch_interval: str = "500ms"

    @field_validator("debounce", "poll_interval", "heartbeat_interval", "watch_interval")
    @classmethod
    def validate_durations(cls, v: str) -> str:
        return _validate_duration(v)

    @property
    def debounce_seconds(self) -> float:
        return parse_duration_seconds(self.debounce)

    @property
    def poll_interval_seconds(self) -> float:
        return parse_duration_seconds(self.poll_interval)

    @property
    def heartbeat_interval_seconds(self) -> float:
        return parse_duration_seconds(self.heartbeat_interval)

    @property
    def watch_interval_seconds(self) -> float:
        return parse_duration_seconds(self.watch_interval)


class ServerConfig(BaseModel):
    """HTTP server binding."""

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)


class Config(BaseModel):
    """Main configuration model."""

    version: str = "0.1.0"
    log_level: str = "INFO"
    database_path: str | None = None
    auction: AuctionConfig = Field(default_factory=AuctionConfig)
    agents: AgentSourceConfig = Field(default_factory=AgentSourceConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


class ConfigManager:
    """Manage configuration loading from multiple sources with hierarchy."""

    def __init__(self, project_root: Path | None = None) -> None:
        """Initialize config manager.

        Args:
            project_root: Root directory of the project (default: current directory)
        """
        self.project_root = project_root or Path.cwd()
        self._config: Config | None = None

    def load_config(self) -> Config:
        """Load configuration from all sources in hierarchy order.

        Configuration hierarchy (highest priority last):
        1. System defaults (embedded in Config model)
        2. Project defaults (.auctioneer/config.yaml)
        3. User overrides (~/.auctioneer/config.yaml)
        4. Project-local overrides (.auctioneer/local.yaml)
        5. Environment variables (AUCTIONEER_* prefix)

        Returns:
            Merged configuration
        """
        if self._config is not None:
            return self._config

        config_dict: dict[str, Any] = {}

        for path in (
            self.project_root / ".auctioneer" / "config.yaml",
            Path.home() / ".auctioneer" / "config.yaml",
            self.project_root / ".auctioneer" / "local.yaml",
        ):
            if path.exists():
                logger.debug("loading_config_file", path=str(path))
                config_dict = self._merge_dicts(config_dict, self._load_yaml(path))

        config_dict = self._apply_env_vars(config_dict)

        self._config = Config(**config_dict)
        return self._config

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load YAML configuration file."""
        with open(path) as f:
            return yaml.safe_load(f) or {}

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_vars(self, config_dict: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variables with AUCTIONEER_ prefix."""
        env_mappings = {
            "AUCTIONEER_LOG_LEVEL": ["log_level"],
            "AUCTIONEER_DATABASE_PATH": ["database_path"],
            "AUCTIONEER_AVAILABILITY_CAP": ["auction", "availability_cap"],
            "AUCTIONEER_STREAM_DEBOUNCE": ["stream", "debounce"],
            "AUCTIONEER_STREAM_POLL_INTERVAL": ["stream", "poll_interval"],
            "AUCTIONEER_HOST": ["server", "host"],
            "AUCTIONEER_PORT": ["server", "port"],
        }

        for env_var, path in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                current = config_dict
                for key in path[:-1]:
                    if key not in current:
                        current[key] = {}
                    current = current[key]
                try:
                    current[path[-1]] = int(value)
                except ValueError:
                    current[path[-1]] = value

        return config_dict

    def write_default_config(self, overwrite: bool = False) -> Path | None:
        """Write the default configuration to .auctioneer/config.yaml.

        Args:
            overwrite: Replace an existing file instead of leaving it untouched

        Returns:
            Path written, or None if a config file already existed
        """
        path = self.project_root / ".auctioneer" / "config.yaml"
        if path.exists() and not overwrite:
            return None
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(Config().model_dump(), f, sort_keys=False)
        logger.info("default_config_written", path=str(path))
        return path

    def get_database_path(self) -> Path:
        """Get path to SQLite database."""
        config = self.load_config()
        if config.database_path:
            return Path(config.database_path).expanduser()
        db_dir = self.project_root / ".auctioneer"
        db_dir.mkdir(exist_ok=True)
        return db_dir / "auctioneer.db"

    def get_log_dir(self) -> Path:
        """Get path to log directory."""
        log_dir = self.project_root / ".auctioneer" / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir
