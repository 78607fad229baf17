"""Backend client layer: auth, live rates, score persistence, leaderboard."""

from fxgame.remote.client import RemoteSync, parse_leaderboard, parse_rates

__all__ = ["RemoteSync", "parse_leaderboard", "parse_rates"]
