"""
Services layer for the knowledge base core.

Infrastructure adapters that support the operations layer.
"""

from .movement_reader import MovementReader
from .media_storage import MediaStorage, LocalMediaStorage, StoredMedia
from .search_scoring import SearchScorer, KeywordOverlapScorer, FuzzyKeywordScorer, tokenize
from .notifier import Notifier, LoggingNotifier

__all__ = [
    # Movement Reader
    "MovementReader",
    # Media Storage
    "MediaStorage",
    "LocalMediaStorage",
    "StoredMedia",
    # Search
    "SearchScorer",
    "KeywordOverlapScorer",
    "FuzzyKeywordScorer",
    "tokenize",
    # Notifications
    "Notifier",
    "LoggingNotifier",
]
