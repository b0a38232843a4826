"""Policy configuration and enforcement helpers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from shipyard.errors import PolicyError, ValidationError

NetworkMode = Literal["online", "offline"]

DEFAULT_FETCH_WINDOW_SECONDS = 60.0


@dataclass(frozen=True, slots=True)
class Policy:
    network_mode: NetworkMode = "online"
    prefer_https: bool = True
    max_workers: int = 4
    fetch_window_seconds: float = DEFAULT_FETCH_WINDOW_SECONDS
    repositories_dir: Path | None = None


def validate_policy(policy: Policy) -> Policy:
    if policy.max_workers < 1:
        raise ValidationError(
            "Policy max_workers must be at least 1.",
            context={"max_workers": str(policy.max_workers)},
        )
    if policy.fetch_window_seconds < 0:
        raise ValidationError(
            "Policy fetch_window_seconds must not be negative.",
            context={"fetch_window_seconds": str(policy.fetch_window_seconds)},
        )
    if policy.network_mode not in ("online", "offline"):
        raise ValidationError(f"Unsupported network_mode value: {policy.network_mode}")
    return policy


def ensure_network_allowed(*, policy: Policy, operation: str) -> None:
    if policy.network_mode == "offline":
        raise PolicyError(
            "Network operations are disabled by policy.",
            hint="Switch policy.network_mode to 'online' for this operation.",
            context={"operation": operation},
        )
