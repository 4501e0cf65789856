"""Configuration helpers for the round engine runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

from tournament_rounds.announce import DEFAULT_PAIRINGS_URL

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class EngineSettings:
    tick_interval_seconds: int
    pairings_url_template: str
    log_level: str
    resume_timers: bool


def read_engine_settings() -> EngineSettings:
    tick = env_int("ROUND_TIMER_TICK_SECONDS", default=5) or 5
    return EngineSettings(
        tick_interval_seconds=max(tick, 1),
        pairings_url_template=os.getenv("PAIRINGS_URL_TEMPLATE") or DEFAULT_PAIRINGS_URL,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
        resume_timers=env_bool("RESUME_TIMERS", default=True),
    )


@dataclass(frozen=True)
class EnvironmentConfig:
    discord_token: str
    tournament_table_name: str
    aws_region: str
    settings: EngineSettings

    @classmethod
    def load(cls) -> "EnvironmentConfig":
        missing: list[str] = []

        def need(name: str) -> str:
            value = os.getenv(name)
            if not value:
                missing.append(name)
                return ""
            return value

        discord_token = need("DISCORD_TOKEN")
        tournament_table_name = need("TOURNAMENT_TABLE_NAME")

        if missing:
            raise RuntimeError("Missing env vars: " + ", ".join(sorted(set(missing))))

        return cls(
            discord_token=discord_token,
            tournament_table_name=tournament_table_name,
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            settings=read_engine_settings(),
        )


__all__ = [
    "env_bool",
    "env_int",
    "EngineSettings",
    "read_engine_settings",
    "EnvironmentConfig",
]
