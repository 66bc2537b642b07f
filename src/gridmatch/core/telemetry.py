"""MatchLog — JSONL match telemetry.

One log per match. Writes one JSONL line per lifecycle event or processed
message plus a match summary as the final line. All entries include schema
version and match ID.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

import gridmatch

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = "1.0.0"


@dataclass
class TelemetryEntry:
    """One engine event."""

    tick: int
    event: str  # "join", "leave", "move", "reject", "timeout", ...
    player_id: str | None
    payload: dict | None
    accepted: bool
    reason: str | None
    state_snapshot: dict
    engine_version: str = gridmatch.__version__


class MatchLog:
    """Writes JSONL telemetry for a single match."""

    def __init__(self, output_dir: Path, match_id: str, context: dict | None = None):
        self._output_dir = Path(output_dir)
        self._match_id = match_id
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._output_dir / f"{match_id}.jsonl"
        self._context = context or {}
        self._finalized = False

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def finalized(self) -> bool:
        return self._finalized

    def log_event(self, entry: TelemetryEntry) -> None:
        record = asdict(entry)
        record["schema_version"] = _SCHEMA_VERSION
        record["match_id"] = self._match_id
        record["timestamp"] = datetime.now(timezone.utc).isoformat()
        self._append(record)

    def finalize_match(
        self,
        outcome: dict | None,
        fidelity: dict,
        extra: dict | None = None,
    ) -> None:
        record = {
            "schema_version": _SCHEMA_VERSION,
            "record_type": "match_summary",
            "match_id": self._match_id,
            "outcome": outcome,
            "fidelity_report": fidelity,
            "engine_version": gridmatch.__version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "mode": self._context.get("mode"),
            "label": self._context.get("label"),
        }
        if extra:
            record.update(extra)
        self._append(record)
        self._finalized = True

    def _append(self, record: dict) -> None:
        try:
            with open(self._file_path, "a") as f:
                f.write(json.dumps(record, default=str) + "\n")
        except OSError as exc:
            # Telemetry must never break a running match.
            logger.warning("Failed to write telemetry for %s: %s", self._match_id, exc)
