"""
Tests for the request-scoped notice channel.
"""

import asyncio

from tutorhub.services import notices
from tutorhub.services.notices import Notice, NoticeChannel


def publish(channel, kind, message="msg"):
    asyncio.run(channel.publish(Notice(kind=kind, message=message)))


class TestNoticeChannel:

    def test_delivers_to_sync_and_async_subscribers(self):
        channel = NoticeChannel()
        received = []

        async def async_subscriber(notice):
            received.append(("async", notice.kind))

        channel.subscribe(lambda notice: received.append(("sync", notice.kind)))
        channel.subscribe(async_subscriber)

        publish(channel, notices.RECORD_CREATED)

        assert received == [("sync", "record_created"), ("async", "record_created")]
        assert [n.kind for n in channel.notices] == ["record_created"]

    def test_kind_filter(self):
        channel = NoticeChannel()
        received = []
        channel.subscribe(received.append, kinds=[notices.INSTALLMENT_ADDED])

        publish(channel, notices.RECORD_CREATED)
        publish(channel, notices.INSTALLMENT_ADDED)

        assert [n.kind for n in received] == ["installment_added"]

    def test_unsubscribe(self):
        channel = NoticeChannel()
        received = []
        unsubscribe = channel.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        publish(channel, notices.RECORD_DELETED)

        assert received == []
        assert len(channel) == 0

    def test_failing_subscriber_does_not_block_others(self, caplog):
        channel = NoticeChannel()
        received = []

        def broken(notice):
            raise RuntimeError("mail server down")

        channel.subscribe(broken)
        channel.subscribe(received.append)

        publish(channel, notices.INSTALLMENT_REMOVED)

        assert len(received) == 1
        assert "mail server down" in caplog.text

    def test_channels_are_isolated(self):
        first, second = NoticeChannel(), NoticeChannel()
        received = []
        first.subscribe(received.append)

        publish(second, notices.RECORD_UPDATED)

        assert received == []
        assert first.notices == []
