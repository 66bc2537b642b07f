"""Read-only leaderboard queries.

All functions take a pymongo.database.Database and return plain dicts.
Nothing here sits on the match engine's mutation path.
"""

from __future__ import annotations

import json
import os

from pymongo import ASCENDING, DESCENDING, MongoClient

from gridmatch.core.ranking import RECORDS_COLLECTION

DEFAULT_TOP_N = 10
URI_ENV = "GRIDMATCH_MONGO_URI"


def get_db(uri: str | None = None, db_name: str = "gridmatch"):
    """Connect and return a pymongo Database handle.

    Falls back to the GRIDMATCH_MONGO_URI env var if no uri provided.
    """
    if uri is None:
        uri = os.environ.get(URI_ENV)
    if not uri:
        raise ValueError(f"No MongoDB URI provided and {URI_ENV} not set")
    client = MongoClient(uri)
    return client[db_name]


def parse_top_request(payload: str | None) -> int:
    """Read N from a ``{"n": int}`` request body, defaulting to 10.

    Empty, malformed and non-positive requests all fall back to the default.
    """
    if not payload:
        return DEFAULT_TOP_N
    try:
        req = json.loads(payload)
    except json.JSONDecodeError:
        return DEFAULT_TOP_N
    if not isinstance(req, dict):
        return DEFAULT_TOP_N
    n = req.get("n")
    if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
        return DEFAULT_TOP_N
    return n


def top_players(db, board_id: str, n: int = DEFAULT_TOP_N) -> list[dict]:
    """Top ``n`` leaderboard rows, best score first, earliest record on ties."""
    cursor = (
        db[RECORDS_COLLECTION]
        .find(
            {"board_id": board_id},
            {"_id": 0, "owner_id": 1, "username": 1, "score": 1},
        )
        .sort([("score", DESCENDING), ("update_time", ASCENDING)])
        .limit(n)
    )
    return [
        {
            "username": doc.get("username", ""),
            "owner_id": doc.get("owner_id", ""),
            "score": int(doc.get("score", 0)),
        }
        for doc in cursor
    ]

