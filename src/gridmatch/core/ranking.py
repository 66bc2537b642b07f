"""Ranking stores — where finished matches are scored.

The engine hands each decisive result to a RankingStore exactly once.
Stores use "best" operator semantics: a player's leaderboard score is the
highest score they have ever submitted, and every submission is counted.

MongoRankingStore writes in a background daemon thread fed by a queue, so
``record_result`` never blocks a tick. All pymongo errors are caught and
logged as warnings, never raised to the caller.
"""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

logger = logging.getLogger(__name__)

RECORDS_COLLECTION = "leaderboard_records"
_BATCH_SIZE = 50
_SENTINEL = object()


@dataclass
class LeaderboardEntry:
    board_id: str
    owner_id: str
    username: str
    score: int
    num_score: int = 1
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "owner_id": self.owner_id,
            "score": self.score,
        }


class RankingStore(ABC):
    """Interface of the external ranking collaborator."""

    @abstractmethod
    def record_result(
        self,
        board_id: str,
        player_id: str,
        display_name: str,
        score: int,
        metadata: dict,
    ) -> None:
        """Submit a score. May be asynchronous; failures are the store's to log."""

    @abstractmethod
    def top_players(self, board_id: str, n: int = 10) -> list[LeaderboardEntry]:
        """Return the top ``n`` entries, best score first."""

    def close(self) -> None:
        """Release resources. Default is a no-op."""


class MemoryRankingStore(RankingStore):
    """In-process store. Used by the local host when no MongoDB is configured."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], LeaderboardEntry] = {}
        self._order: dict[tuple[str, str], int] = {}
        self.submissions: list[dict] = []

    def record_result(
        self,
        board_id: str,
        player_id: str,
        display_name: str,
        score: int,
        metadata: dict,
    ) -> None:
        self.submissions.append({
            "board_id": board_id,
            "player_id": player_id,
            "display_name": display_name,
            "score": score,
            "metadata": dict(metadata),
        })
        key = (board_id, player_id)
        existing = self._records.get(key)
        if existing is None:
            self._records[key] = LeaderboardEntry(
                board_id=board_id,
                owner_id=player_id,
                username=display_name,
                score=score,
                metadata=dict(metadata),
            )
            self._order[key] = len(self._order)
            return
        existing.num_score += 1
        existing.username = display_name or existing.username
        if score > existing.score:
            existing.score = score
            existing.metadata = dict(metadata)

    def top_players(self, board_id: str, n: int = 10) -> list[LeaderboardEntry]:
        entries = [
            (self._order[key], entry)
            for key, entry in self._records.items()
            if key[0] == board_id
        ]
        entries.sort(key=lambda pair: (-pair[1].score, pair[0]))
        return [entry for _, entry in entries[:n]]


class MongoRankingStore(RankingStore):
    """Background MongoDB writer for leaderboard records.

    Connects to MongoDB and verifies connectivity with a ping, then runs a
    daemon thread that drains a queue and writes upserts in batches. If the
    initial connection fails, the store disables itself and all writes
    become no-ops.
    """

    def __init__(self, uri: str, db_name: str = "gridmatch") -> None:
        self._uri = uri
        self._db_name = db_name
        self._disabled = False
        self._closed = False
        self._client = None
        self._db = None
        self._queue: queue.Queue = queue.Queue()

        try:
            self._client = MongoClient(uri, serverSelectionTimeoutMS=5000)
            self._client.admin.command("ping")
        except (ConnectionFailure, ServerSelectionTimeoutError, PyMongoError) as exc:
            logger.warning("MongoDB connection failed, ranking disabled: %s", exc)
            self._disable()
            return

        self._db = self._client[db_name]
        self._ensure_indexes()

        self._thread = threading.Thread(
            target=self._writer_loop, daemon=True, name="ranking-writer",
        )
        self._thread.start()

    def _disable(self) -> None:
        self._disabled = True
        self._thread = threading.Thread(target=lambda: None, daemon=True)
        self._thread.start()

    @property
    def disabled(self) -> bool:
        return self._disabled

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> MongoRankingStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record_result(
        self,
        board_id: str,
        player_id: str,
        display_name: str,
        score: int,
        metadata: dict,
    ) -> None:
        """Enqueue a leaderboard upsert for background writing.

        The update is an aggregation pipeline so metadata is replaced only
        when ``score`` beats the stored best, as in MemoryRankingStore.
        Every expression in the single ``$set`` stage reads the document
        as it was before this submission.
        """
        if self._disabled or self._closed:
            return
        now = datetime.now(timezone.utc)
        score = int(score)
        improves = {"$gt": [score, "$score"]}
        username: Any = (
            {"$literal": display_name} if display_name
            else {"$ifNull": ["$username", ""]}
        )
        update: dict[str, Any] = {
            "filter": {"board_id": board_id, "owner_id": player_id},
            "pipeline": [
                {"$set": {
                    "score": {"$max": ["$score", score]},
                    "num_score": {"$add": [{"$ifNull": ["$num_score", 0]}, 1]},
                    "metadata": {
                        "$cond": [improves, {"$literal": dict(metadata)}, "$metadata"],
                    },
                    "username": username,
                    "update_time": now,
                    "create_time": {"$ifNull": ["$create_time", now]},
                }},
            ],
        }
        self._queue.put(update)

    def top_players(self, board_id: str, n: int = 10) -> list[LeaderboardEntry]:
        if self._disabled or self._db is None:
            return []
        try:
            cursor = (
                self._db[RECORDS_COLLECTION]
                .find({"board_id": board_id})
                .sort([("score", DESCENDING), ("update_time", ASCENDING)])
                .limit(n)
            )
            return [_entry_from_doc(doc) for doc in cursor]
        except PyMongoError as exc:
            logger.warning("Failed to list leaderboard %s: %s", board_id, exc)
            return []

    def close(self) -> None:
        """Send sentinel, drain remaining items, join background thread."""
        if self._closed:
            return
        self._closed = True

        if not self._disabled:
            self._queue.put(_SENTINEL)
        self._thread.join(timeout=10)

        if self._client:
            self._client.close()

    # ------------------------------------------------------------------
    # Internal: background writer
    # ------------------------------------------------------------------

    def _writer_loop(self) -> None:
        """Background thread: drain queue and batch-write to MongoDB."""
        while True:
            batch: list[dict] = []

            try:
                item = self._queue.get(timeout=1.0)
            except queue.Empty:
                continue

            if item is _SENTINEL:
                self._drain_remaining(batch)
                return

            batch.append(item)

            while len(batch) < _BATCH_SIZE:
                try:
                    item = self._queue.get_nowait()
                except queue.Empty:
                    break
                if item is _SENTINEL:
                    self._flush_batch(batch)
                    self._drain_remaining([])
                    return
                batch.append(item)

            self._flush_batch(batch)

    def _drain_remaining(self, batch: list) -> None:
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is _SENTINEL:
                continue
            batch.append(item)
        if batch:
            self._flush_batch(batch)

    def _flush_batch(self, batch: list[dict]) -> None:
        for update in batch:
            try:
                self._db[RECORDS_COLLECTION].update_one(
                    update["filter"], update["pipeline"], upsert=True,
                )
            except PyMongoError as exc:
                logger.warning(
                    "Failed to write leaderboard record for %s: %s",
                    update["filter"].get("owner_id"), exc,
                )

    # ------------------------------------------------------------------
    # Internal: indexes
    # ------------------------------------------------------------------

    def _ensure_indexes(self) -> None:
        try:
            records = self._db[RECORDS_COLLECTION]
            records.create_index(
                [("board_id", ASCENDING), ("owner_id", ASCENDING)], unique=True,
            )
            records.create_index([("board_id", ASCENDING), ("score", DESCENDING)])
        except PyMongoError as exc:
            logger.warning("Failed to create indexes: %s", exc)


def _entry_from_doc(doc: dict) -> LeaderboardEntry:
    return LeaderboardEntry(
        board_id=doc.get("board_id", ""),
        owner_id=doc.get("owner_id", ""),
        username=doc.get("username", ""),
        score=int(doc.get("score", 0)),
        num_score=int(doc.get("num_score", 1)),
        metadata=doc.get("metadata") or {},
    )
