"""Session cost estimation from token counts."""

from auctioneer.domain.models import SessionCost

# USD per 1M tokens, assuming a 50/50 input/output split
MODEL_COSTS: dict[str, float] = {
    "claude-opus-4-5": 45.0,
    "claude-opus-4-6": 45.0,
    "claude-sonnet-4-5": 9.0,
    "claude-sonnet-4-6": 9.0,
    "claude-haiku-4-5": 1.5,
}


def normalize_model_name(model: str) -> str:
    """Strip a provider prefix such as ``anthropic/`` or ``ollama/``."""
    return model.rsplit("/", 1)[-1]


def is_local_model(model: str) -> bool:
    """Local models run for free."""
    return model.startswith(("ollama/", "ollama:"))


def estimate_cost(model: str, total_tokens: int) -> SessionCost:
    """Estimate session spend for a model; unknown models cost 0."""
    normalized = normalize_model_name(model)
    per_million = MODEL_COSTS.get(normalized, 0.0)
    estimated = (total_tokens / 1_000_000) * per_million
    return SessionCost(estimated=round(estimated, 4), model=normalized, tokens=total_tokens)
