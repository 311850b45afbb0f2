"""File-backed agent state resolver.

Reads agent rosters (``openclaw.json``) and per-agent session indexes
(``sessions.json``) from one or more agent host instances and projects them
into :class:`~auctioneer.domain.models.Agent` snapshots.
"""

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from auctioneer.domain.costs import estimate_cost
from auctioneer.domain.models import Agent, AgentSession, AgentStatus
from auctioneer.domain.ports.agent_state_provider import AgentStateProvider
from auctioneer.infrastructure.config import AgentSourceConfig
from auctioneer.infrastructure.logger import get_logger

logger = get_logger(__name__)


class _RawModelRef(BaseModel):
    primary: str


class _RawDefaults(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    model: _RawModelRef | None = None
    workspace: str | None = None
    context_tokens: int | None = Field(default=None, alias="contextTokens")


class _RawAgent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str | None = None
    default: bool = False
    model: str | _RawModelRef | None = None
    workspace: str | None = None
    skills: list[str] = Field(default_factory=list)
    context_tokens: int | None = Field(default=None, alias="contextTokens")


class _RawSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total_tokens: int | None = Field(default=None, alias="totalTokens")
    context_tokens: int | None = Field(default=None, alias="contextTokens")
    model: str | None = None
    model_override: str | None = Field(default=None, alias="modelOverride")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    last_channel: str | None = Field(default=None, alias="lastChannel")
    input_tokens: int | None = Field(default=None, alias="inputTokens")
    output_tokens: int | None = Field(default=None, alias="outputTokens")

    @field_validator("updated_at", mode="before")
    @classmethod
    def parse_epoch_millis(cls, v: Any) -> datetime | None:
        """``updatedAt`` is epoch milliseconds; 0 means never."""
        if v is None:
            return None
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"updatedAt must be epoch milliseconds, got {v!r}")
        if not v:
            return None
        try:
            return datetime.fromtimestamp(v / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError(f"updatedAt out of range: {v}") from e


def read_json_safe(path: Path) -> Any | None:
    """Read a JSON file, returning None if it is missing or unparseable."""
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.debug("json_source_unreadable", path=str(path), error=str(e))
        return None


class AgentStateResolver(AgentStateProvider):
    """Re-reads every configured instance on each call; nothing is cached."""

    def __init__(
        self,
        config: AgentSourceConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def snapshot(self) -> list[Agent]:
        return self.list_agents()

    def watch_targets(self) -> list[Path]:
        return self.watch_paths()

    def list_agents(self) -> list[Agent]:
        """Build the agent roster across all instances.

        When the same agent id appears in several instances, the copy with
        the most sessions wins; on a tie the first instance listed wins.

        Returns:
            Agents in first-seen order
        """
        now = self._clock()
        by_id: dict[str, Agent] = {}

        for instance in self.config.instances:
            for agent in self._load_instance(instance.resolved_config_path(), now):
                existing = by_id.get(agent.id)
                if existing is None or agent.total_sessions > existing.total_sessions:
                    by_id[agent.id] = agent

        return list(by_id.values())

    def watch_paths(self) -> list[Path]:
        """Config files plus session indexes whose directory exists.

        Watching a session file only makes sense once its agent directory
        has been created by the agent host.
        """
        paths: list[Path] = [i.resolved_config_path() for i in self.config.instances]

        for instance in self.config.instances:
            for raw in self._read_roster(instance.resolved_config_path()):
                for session_instance in self.config.instances:
                    session_path = session_instance.resolved_sessions_path(raw.id)
                    if session_path.parent.is_dir() and session_path not in paths:
                        paths.append(session_path)

        return paths

    def _read_roster(self, config_path: Path) -> list[_RawAgent]:
        data = read_json_safe(config_path)
        if not isinstance(data, dict):
            return []
        agents_section = data.get("agents")
        if not isinstance(agents_section, dict):
            return []
        entries = agents_section.get("list")
        if not isinstance(entries, list):
            return []

        roster: list[_RawAgent] = []
        for entry in entries:
            try:
                roster.append(_RawAgent.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    "agent_entry_skipped", path=str(config_path), error=str(e).splitlines()[0]
                )
        return roster

    def _read_defaults(self, config_path: Path) -> _RawDefaults:
        data = read_json_safe(config_path)
        try:
            return _RawDefaults.model_validate(data["agents"]["defaults"])
        except (TypeError, KeyError, ValidationError):
            return _RawDefaults()

    def _load_instance(self, config_path: Path, now: datetime) -> list[Agent]:
        roster = self._read_roster(config_path)
        if not roster:
            return []
        defaults = self._read_defaults(config_path)
        return [self._build_agent(raw, defaults, now) for raw in roster]

    def _resolve_model(self, raw: _RawAgent, defaults: _RawDefaults) -> str:
        if raw.model is None:
            return defaults.model.primary if defaults.model else "unknown"
        if isinstance(raw.model, str):
            return raw.model
        return raw.model.primary

    def _sessions_for(self, agent_id: str) -> dict[str, _RawSession]:
        """Merge the agent's session indexes across instances; later files win per key."""
        merged: dict[str, _RawSession] = {}
        for instance in self.config.instances:
            data = read_json_safe(instance.resolved_sessions_path(agent_id))
            if not isinstance(data, dict):
                continue
            for key, entry in data.items():
                try:
                    merged[key] = _RawSession.model_validate(entry)
                except ValidationError:
                    logger.debug("session_entry_skipped", agent_id=agent_id, key=key)
        return merged

    def _build_agent(self, raw: _RawAgent, defaults: _RawDefaults, now: datetime) -> Agent:
        model = self._resolve_model(raw, defaults)
        context_tokens = self.config.default_context_tokens
        if raw.context_tokens is not None:
            context_tokens = raw.context_tokens
        elif defaults.context_tokens is not None:
            context_tokens = defaults.context_tokens

        sessions: list[AgentSession] = []
        for key, entry in self._sessions_for(raw.id).items():
            session_model = entry.model_override or entry.model or model
            total_tokens = (
                entry.total_tokens
                if entry.total_tokens is not None
                else (entry.input_tokens or 0) + (entry.output_tokens or 0)
            )
            sessions.append(
                AgentSession(
                    key=key,
                    updated_at=entry.updated_at,
                    total_tokens=total_tokens,
                    context_tokens=entry.context_tokens
                    if entry.context_tokens is not None
                    else context_tokens,
                    model=session_model,
                    last_channel=entry.last_channel or "unknown",
                    is_subagent=":subagent:" in key,
                    cost=estimate_cost(session_model, total_tokens),
                )
            )

        window = timedelta(seconds=self.config.activity_window_seconds)
        timestamps = [s.updated_at for s in sessions if s.updated_at is not None]
        active_sessions = sum(1 for ts in timestamps if now - ts < window)
        last_active = max(timestamps) if timestamps else None

        if active_sessions > 0:
            status = AgentStatus.ACTIVE
        elif sessions:
            status = AgentStatus.IDLE
        else:
            status = AgentStatus.NEVER

        return Agent(
            id=raw.id,
            name=raw.name or raw.id,
            model=model,
            workspace=raw.workspace or defaults.workspace or "",
            skills=raw.skills,
            context_tokens=context_tokens,
            is_default=raw.default,
            sessions=sessions,
            total_sessions=len(sessions),
            active_sessions=active_sessions,
            last_active=last_active,
            status=status,
        )
