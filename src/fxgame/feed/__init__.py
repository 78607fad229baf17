"""Rate feed layer: synthetic generator, bounded history, and the publishing feed."""

from fxgame.feed.generator import RateSeriesGenerator
from fxgame.feed.history import HistoryStore
from fxgame.feed.rate_feed import FeedMode, RateFeed

__all__ = ["FeedMode", "HistoryStore", "RateFeed", "RateSeriesGenerator"]
