"""Server configuration loader."""

import os

import yaml
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class EngineConfig:
    tick_rate: int = 10  # ticks per second
    turn_limit_s: float = 30.0  # timed mode only
    time_update_ticks: int = 10  # time-remaining broadcast cadence
    default_mode: str = "standard"
    max_players: int | None = None  # None = admit everyone


@dataclass
class RankingConfig:
    board_id: str = "TicTacToeLeaderboard"
    mongo_uri: str | None = None
    db_name: str = "gridmatch"
    uri_env: str = "GRIDMATCH_MONGO_URI"  # env var consulted when mongo_uri unset

    def resolve_uri(self) -> str | None:
        return self.mongo_uri or os.environ.get(self.uri_env) or None


@dataclass
class ServerConfig:
    engine: EngineConfig = field(default_factory=EngineConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    telemetry_dir: Path | None = None


def load_config(path: Path) -> ServerConfig:
    """Load server config from YAML file. Missing sections use defaults."""
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    e = raw.get("engine", {}) or {}
    engine = EngineConfig(
        tick_rate=int(e.get("tick_rate", 10)),
        turn_limit_s=float(e.get("turn_limit_s", 30.0)),
        time_update_ticks=int(e.get("time_update_ticks", e.get("tick_rate", 10))),
        default_mode=e.get("default_mode", "standard"),
        max_players=e.get("max_players"),
    )
    if engine.tick_rate <= 0:
        raise ValueError(f"engine.tick_rate must be positive, got {engine.tick_rate}")
    if engine.time_update_ticks <= 0:
        raise ValueError(
            f"engine.time_update_ticks must be positive, got {engine.time_update_ticks}"
        )

    r = raw.get("ranking", {}) or {}
    ranking = RankingConfig(
        board_id=r.get("board_id", "TicTacToeLeaderboard"),
        mongo_uri=r.get("mongo_uri"),
        db_name=r.get("db_name", "gridmatch"),
        uri_env=r.get("uri_env", "GRIDMATCH_MONGO_URI"),
    )

    telemetry_dir = raw.get("telemetry_dir")
    return ServerConfig(
        engine=engine,
        ranking=ranking,
        telemetry_dir=Path(telemetry_dir) if telemetry_dir else None,
    )
