"""Tests for the fire-and-forget audit and notification dispatcher."""

import asyncio

import pytest

from globalsearch.side_channels import LoggingAuditSink, LoggingNotifier, Notifier, SideChannelDispatcher


class SlowNotifier(Notifier):

    def __init__(self):
        self.release = asyncio.Event()
        self.delivered = []

    async def notify_user(self, user_id, title, message, data):
        await self.release.wait()
        self.delivered.append(user_id)


class BrokenNotifier(Notifier):

    def notify_user(self, user_id, title, message, data):
        raise RuntimeError("push gateway down")


class TestSideChannelDispatcher:

    @pytest.mark.asyncio
    async def test_delivery_does_not_block_caller(self, t1_user, audit_sink):
        notifier = SlowNotifier()
        dispatcher = SideChannelDispatcher(audit_sink, notifier)

        dispatcher.notify_search_completed(t1_user, "Acme", 3, 12)
        await asyncio.sleep(0)

        assert dispatcher.pending == 1
        assert notifier.delivered == []

        notifier.release.set()
        await dispatcher.drain()

        assert notifier.delivered == [1]
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_notification_content(self, t1_user, audit_sink, notifier):
        dispatcher = SideChannelDispatcher(audit_sink, notifier)

        dispatcher.notify_search_completed(t1_user, "Acme", 3, 12)
        await dispatcher.drain()

        assert notifier.notifications == [(
            1,
            "Search completed",
            "Search completed: Found 3 results for 'Acme' in 12ms",
            {'totalResults': 3, 'duration': 12},
        )]

    @pytest.mark.asyncio
    async def test_synchronous_failure_is_contained(self, t1_user, audit_sink):
        dispatcher = SideChannelDispatcher(audit_sink, BrokenNotifier())

        dispatcher.notify_search_completed(t1_user, "Acme", 0, 5)
        dispatcher.audit_search(t1_user, "T1", "Acme", 0)
        await dispatcher.drain()

        assert audit_sink.events[0]['query'] == "Acme"

    @pytest.mark.asyncio
    async def test_default_sinks_log(self, t1_user):
        dispatcher = SideChannelDispatcher()
        assert isinstance(dispatcher.audit_sink, LoggingAuditSink)
        assert isinstance(dispatcher.notifier, LoggingNotifier)

        dispatcher.audit_search(t1_user, "T1", "Acme", 2)
        dispatcher.notify_search_completed(t1_user, "Acme", 2, 8)
        await dispatcher.drain()

        assert dispatcher.pending == 0
