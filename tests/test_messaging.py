# tests/test_messaging.py
"""
Tests for messaging.py - summary consolidation and conversation participants
"""
from datetime import datetime, timedelta, timezone

import pytest

from marvin.jobs import SERIAL_BATCH_TAG
from marvin.messaging import (
    ConversationMessageParticipant,
    DelayedMessageStore,
    SummaryMessageConsolidator,
    active,
    deleted,
    remove_messages,
)


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
EARLIER = NOW - timedelta(hours=1)
LATER = NOW + timedelta(hours=1)


@pytest.fixture
def store():
    return DelayedMessageStore()


def consolidator(store, queue, batch_size=500):
    return SummaryMessageConsolidator(store, queue, batch_size=batch_size, now=lambda: NOW)


class TestDelayedMessageStore:
    def test_pending_groups_by_channel_and_root_account(self, store):
        store.create(1, root_account_id=100, send_at=EARLIER)
        store.create(1, root_account_id=100, send_at=EARLIER)
        store.create(1, root_account_id=200, send_at=EARLIER)
        store.create(2, root_account_id=100, send_at=LATER)

        assert store.pending_groups(NOW) == [(1, 100), (1, 200)]

    def test_mark_sent_skips_already_sent(self, store):
        first = store.create(1, send_at=EARLIER)
        second = store.create(1, send_at=EARLIER)
        second.workflow_state = "sent"

        assert store.mark_sent([first.id, second.id, 99], NOW) == [first.id]
        assert first.batched_at == NOW

    def test_summarize(self, store):
        a = store.create(1, root_account_id=100, summary="New grade posted")
        b = store.create(1, root_account_id=100, summary="Assignment due")

        summary = store.summarize([a.id, b.id])

        assert summary.delayed_message_ids == [a.id, b.id]
        assert summary.body == "New grade posted\nAssignment due"
        assert store.summaries == [summary]

    def test_summarize_nothing(self, store):
        assert store.summarize([42]) is None


class TestSummaryMessageConsolidator:
    def test_one_summary_per_group(self, store, queue):
        for cc_id in (1, 2):
            store.create(cc_id, root_account_id=100, send_at=EARLIER, summary=f"for {cc_id}")
            store.create(cc_id, root_account_id=100, send_at=EARLIER, summary=f"more for {cc_id}")

        assert consolidator(store, queue).process() == 2

        queue.run()
        assert [s.communication_channel_id for s in store.summaries] == [1, 2]
        assert [len(s.delayed_message_ids) for s in store.summaries] == [2, 2]
        assert all(m.workflow_state == "sent" for m in store.messages.values())

    def test_batches_of_groups(self, store, queue):
        for cc_id in (1, 2, 3, 4):
            store.create(cc_id, root_account_id=100, send_at=EARLIER)

        consolidator(store, queue, batch_size=2).process()

        assert len(queue.pending) == 2
        assert all(job.tag == SERIAL_BATCH_TAG for job in queue.pending)
        inner = [job for batch in queue.pending for job in batch.jobs]
        assert [job.tag for job in inner] == ["DelayedMessage.summarize"] * 4
        assert [job.args for job in inner] == [([1],), ([2],), ([3],), ([4],)]

    def test_future_messages_wait(self, store, queue):
        later = store.create(1, send_at=LATER)

        assert consolidator(store, queue).process() == 0
        assert queue.pending == []
        assert later.workflow_state == "pending"

    def test_messages_are_not_sent_twice(self, store, queue):
        store.create(1, root_account_id=100, send_at=EARLIER)
        job = consolidator(store, queue)

        job.process()
        job.process()
        queue.run()

        assert len(store.summaries) == 1

    def test_already_sent_ids_are_dropped(self, store, queue):
        message = store.create(1, root_account_id=100, send_at=EARLIER)
        job = consolidator(store, queue)
        ids = job.delayed_message_ids_for_batch(1, 100, NOW)
        message.workflow_state = "sent"

        job.delay_summarize([ids], NOW)

        assert queue.pending == []


class TestConversationMessageParticipants:
    @pytest.fixture
    def participants(self):
        return [
            ConversationMessageParticipant(1, user_id=10),
            ConversationMessageParticipant(1, user_id=20),
            ConversationMessageParticipant(2, user_id=10),
            ConversationMessageParticipant(3, user_id=10, workflow_state=None),
        ]

    def test_null_state_counts_as_active(self, participants):
        assert len(active(participants)) == 4
        assert deleted(participants) == []

    def test_remove_messages_for_one_user(self, participants):
        count = remove_messages(participants, 10, [1, 2])

        assert count == 2
        assert [(p.conversation_message_id, p.user_id) for p in deleted(participants)] == [(1, 10), (2, 10)]
        assert [(p.conversation_message_id, p.user_id) for p in active(participants)] == [(1, 20), (3, 10)]
