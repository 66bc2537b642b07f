"""gridmatch — authoritative tick-driven tic-tac-toe match engine."""

__version__ = "0.1.0"
