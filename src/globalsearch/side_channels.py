"""
Search side channels: audit trail and user notifications.

Both are fire-and-forget. The dispatcher schedules each delivery as its own
asyncio task and returns immediately; a failing sink is logged and never
affects the search that triggered it.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from .logger_config import logger
from .models.search import CallerIdentity


SEARCH_COMPLETED_TITLE = "Search completed"
SEARCH_COMPLETED_MESSAGE = "Search completed: Found %d results for '%s' in %dms"


class AuditSink(ABC):
    """Receives one audit record per executed search."""

    @abstractmethod
    async def log_search_event(self, identity: CallerIdentity, tenant_id: str,
                               query: str, result_count: int) -> None:
        pass


class Notifier(ABC):
    """Delivers a notification to one user."""

    @abstractmethod
    async def notify_user(self, user_id: int, title: str, message: str,
                          data: Dict[str, Any]) -> None:
        pass


class LoggingAuditSink(AuditSink):
    """Writes audit records to the structured log."""

    async def log_search_event(self, identity: CallerIdentity, tenant_id: str,
                               query: str, result_count: int) -> None:
        logger.info(
            f"Search by {identity.username} in tenant {tenant_id}",
            extra={'component': 'audit', 'action': 'SEARCH',
                   'user_id': identity.user_id, 'username': identity.username,
                   'tenant_id': tenant_id,
                   'details': {'query': query, 'resultCount': result_count}}
        )


class LoggingNotifier(Notifier):
    """Writes notifications to the structured log instead of a push channel."""

    async def notify_user(self, user_id: int, title: str, message: str,
                          data: Dict[str, Any]) -> None:
        logger.info(
            message,
            extra={'component': 'notifier', 'action': 'notify_user',
                   'user_id': user_id, 'title': title, 'data': data}
        )


class SideChannelDispatcher:
    """
    Schedules audit and notification deliveries without awaiting them.

    Pending deliveries are tracked so they are not garbage collected while
    running and so that ``drain()`` can wait for them at shutdown.
    """

    def __init__(self, audit_sink: Optional[AuditSink] = None,
                 notifier: Optional[Notifier] = None):
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.notifier = notifier or LoggingNotifier()
        self._pending: Set[asyncio.Task] = set()

    def _fire(self, delivery: Callable[[], Awaitable[None]], channel: str) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(delivery, channel))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, delivery: Callable[[], Awaitable[None]], channel: str) -> None:
        try:
            await delivery()
        except Exception as e:
            logger.warning(
                f"{channel} delivery failed: {e}",
                extra={'component': 'side_channels', 'action': 'delivery_failed',
                       'channel': channel}
            )

    def audit_search(self, identity: CallerIdentity, tenant_id: str,
                     query: str, result_count: int) -> asyncio.Task:
        return self._fire(
            lambda: self.audit_sink.log_search_event(identity, tenant_id, query, result_count),
            'audit'
        )

    def notify_search_completed(self, identity: CallerIdentity, query: str,
                                total_results: int, duration_ms: int) -> asyncio.Task:
        return self._fire(
            lambda: self.notifier.notify_user(
                identity.user_id,
                SEARCH_COMPLETED_TITLE,
                SEARCH_COMPLETED_MESSAGE % (total_results, query, duration_ms),
                {'totalResults': total_results, 'duration': duration_ms},
            ),
            'notification'
        )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
