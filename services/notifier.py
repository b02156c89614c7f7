"""
Approval event notifications.

Operations call a Notifier after an approval transition is persisted.
LoggingNotifier only writes a log line; real delivery (mail, chat)
plugs in behind the same interface.
"""

import logging
from abc import ABC, abstractmethod

from domain.models import Article
from domain.workflow import TransitionResult

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Receives approval workflow events."""

    @abstractmethod
    def approval_changed(self, article: Article, result: TransitionResult) -> None:
        """
        Called once per persisted approval transition.

        Args:
            article: Article state after the transition
            result: The transition that was applied
        """
        pass


class LoggingNotifier(Notifier):
    """Notifier that logs events."""

    def approval_changed(self, article: Article, result: TransitionResult) -> None:
        entry = result.history_entry
        if result.is_partial_approval:
            logger.info(
                f"Article '{article.title}' ({article.id}) approved by {entry.user_id}, "
                f"more approvals required"
            )
            return

        logger.info(
            f"Article '{article.title}' ({article.id}): {entry.action} by {entry.user_id} "
            f"({result.previous_approval_status} → {result.new_approval_status}); "
            f"notify author {article.author_id}"
        )
