"""CLI entry point: python -m gridmatch {replay,top} ..."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pymongo.errors import PyMongoError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gridmatch.config import ServerConfig, load_config
from gridmatch.core.leaderboard import get_db, parse_top_request, top_players
from gridmatch.core.ranking import MemoryRankingStore, MongoRankingStore, RankingStore
from gridmatch.game.board import render_board
from gridmatch.game.events import Broadcast, OpCode
from gridmatch.game.state import Player
from gridmatch.host import LocalHost
from gridmatch.registry import build_default_registry

console = Console()

_OP_STYLES = {
    OpCode.WIN_RESULT: "bold green",
    OpCode.DRAW_RESULT: "bold yellow",
    OpCode.TIMEOUT_RESULT: "bold red",
    OpCode.MOVE_REJECTED: "red",
}


def _load_server_config(path: Path | None) -> ServerConfig:
    if path is None:
        return ServerConfig()
    if not path.exists():
        print(f"Error: config file not found: {path}", file=sys.stderr)
        sys.exit(1)
    return load_config(path)


def _build_store(config: ServerConfig) -> RankingStore:
    uri = config.ranking.resolve_uri()
    if uri:
        return MongoRankingStore(uri, config.ranking.db_name)
    return MemoryRankingStore()


def _print_broadcast(event: Broadcast, tick: int) -> None:
    to = ",".join(p.user_id for p in event.recipients) if event.private else "all"
    name = f"{event.op_code.name:<15}"
    style = _OP_STYLES.get(event.op_code)
    if style:
        name = f"[{style}]{name}[/{style}]"
    console.print(f"[dim]t{tick:>4}[/dim] {name} -> {escape(to)}: {escape(event.data().decode('utf-8'))}")


def _run_replay(config: ServerConfig, script_path: Path) -> int:
    """Play a scripted match through the local host on a simulated clock."""
    with open(script_path) as f:
        script = yaml.safe_load(f) or {}

    store = _build_store(config)
    host = LocalHost(config, build_default_registry(config.engine), store)

    label = script.get("label", "lobby")
    params = {"mode": script["mode"]} if "mode" in script else {}
    match_id = host.create_match(label, params)
    hosted = host.match(match_id)
    step_s = hosted.tick_interval_s

    players = {
        p["user_id"]: Player(user_id=p["user_id"], username=p.get("username", p["user_id"]))
        for p in script.get("players", [])
    }
    console.print(
        f"Match [bold]{match_id}[/bold] ({hosted.state.mode.value}, label={hosted.label})"
    )

    now = 0.0
    seen = 0

    def flush() -> None:
        nonlocal seen
        for event in hosted.dispatcher.events[seen:]:
            _print_broadcast(event, hosted.state.tick)
        seen = len(hosted.dispatcher.events)

    for player in players.values():
        accepted, reason = host.join(match_id, player, now)
        if not accepted:
            console.print(f"[red]{player.user_id} refused: {reason}[/red]")
    flush()

    for step in script.get("moves", []):
        target = float(step.get("at", now + step_s))
        while now + step_s <= target and not hosted.state.ended:
            host.step(match_id, now)
            now += step_s
            flush()
        if hosted.state.ended:
            break
        player = players[step["player"]]
        if "leave" in step:
            host.leave(match_id, player, now)
        else:
            raw = step.get("raw")
            if raw is None:
                raw = json.dumps({"row": step["row"], "col": step["col"]})
            host.send(match_id, player, raw)
        host.step(match_id, now)
        now += step_s
        flush()

    wait_s = float(script.get("wait", 0))
    deadline = now + wait_s
    while not hosted.state.ended and now < deadline:
        host.step(match_id, now)
        now += step_s
        flush()

    state = host.terminate(match_id)
    console.print()
    console.print(render_board(state.board))
    console.print()
    if state.outcome:
        outcome = state.outcome
        console.print(
            f"Outcome: [bold]{outcome.cause.value}[/bold]"
            + (f", winner {outcome.winner_id} ({outcome.symbol})" if outcome.winner_id else "")
        )
    else:
        console.print(f"Match did not finish (phase={state.phase.value})")

    entries = store.top_players(config.ranking.board_id, 10)
    _print_leaderboard([e.to_dict() for e in entries], config.ranking.board_id)
    store.close()
    return 0


def _print_leaderboard(rows: list[dict], board_id: str) -> None:
    table = Table(title=board_id)
    table.add_column("#", justify="right")
    table.add_column("Player")
    table.add_column("Owner ID", style="dim")
    table.add_column("Score", justify="right")
    for rank, row in enumerate(rows, 1):
        table.add_row(str(rank), escape(row["username"]), escape(row["owner_id"]), str(row["score"]))
    console.print(table)


def _run_top(config: ServerConfig, n: int, body: str | None) -> int:
    uri = config.ranking.resolve_uri()
    if not uri:
        print(
            f"Error: no MongoDB URI configured (set {config.ranking.uri_env})",
            file=sys.stderr,
        )
        return 1
    if body is not None:
        n = parse_top_request(body)
    db = get_db(uri, config.ranking.db_name)
    try:
        rows = top_players(db, config.ranking.board_id, n)
    except PyMongoError as exc:
        print(f"Error: could not read leaderboard: {exc}", file=sys.stderr)
        return 1
    _print_leaderboard(rows, config.ranking.board_id)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="gridmatch",
        description="Authoritative tic-tac-toe match engine",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to server YAML config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Play a scripted match")
    replay.add_argument("script", type=Path, help="Path to match script YAML")

    top = sub.add_parser("top", help="Show the leaderboard")
    top.add_argument("-n", type=int, default=10, help="Number of players (default: 10)")
    top.add_argument(
        "--json",
        dest="body",
        default=None,
        help='Request body as JSON, e.g. {"n": 5}; overrides -n',
    )

    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = _load_server_config(args.config)

    if args.command == "replay":
        if not args.script.exists():
            print(f"Error: script file not found: {args.script}", file=sys.stderr)
            return 1
        return _run_replay(config, args.script)
    return _run_top(config, args.n, args.body)


if __name__ == "__main__":
    sys.exit(main())
