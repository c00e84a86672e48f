"""Engine components orchestrating fetch → extract → sync → reconcile."""

from .extractor import CircularExtractor, MarkupError
from .fetcher import FeedDecodeError, FeedFetcher, FeedTransportError, FetchError
from .reconciler import RemovalPlan, find_removal_candidates, reconcile
from .records import Attachment, Circular
from .store import BaseStore, PurgeResult, SQLiteCircularStore, SyncResult

__all__ = [
    "Attachment",
    "BaseStore",
    "Circular",
    "CircularExtractor",
    "FeedDecodeError",
    "FeedFetcher",
    "FeedTransportError",
    "FetchError",
    "MarkupError",
    "PurgeResult",
    "RemovalPlan",
    "SQLiteCircularStore",
    "SyncResult",
    "find_removal_candidates",
    "reconcile",
]
