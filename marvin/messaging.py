"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

messaging.py

Notification summaries and conversation message participants.

Users who ask for daily or weekly notifications get DelayedMessages
instead of immediate ones. SummaryMessageConsolidator runs periodically,
picks up the messages that are due and queues one summarize job per
(communication channel, root account), so a user in two institutions
gets two separate summaries.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from marvin.jobs import JobQueue


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Delayed Messages
# ============================================================================

@dataclass
class DelayedMessage:
    id: int
    communication_channel_id: Any
    root_account_id: Any = None
    send_at: datetime = field(default_factory=_now)
    workflow_state: str = "pending"
    batched_at: Optional[datetime] = None
    summary: str = ""
    notification_name: str = ""


@dataclass
class SummaryMessage:
    communication_channel_id: Any
    root_account_id: Any
    delayed_message_ids: List[int]
    body: str


class DelayedMessageStore:
    """Holds delayed messages and the summaries built from them."""

    def __init__(self, messages: Iterable[DelayedMessage] = ()):
        self._ids = itertools.count(1)
        self.messages: Dict[int, DelayedMessage] = {}
        self.summaries: List[SummaryMessage] = []
        for message in messages:
            self.messages[message.id] = message

    def create(self, communication_channel_id: Any, **attrs: Any) -> DelayedMessage:
        message_id = next(self._ids)
        while message_id in self.messages:
            message_id = next(self._ids)
        message = DelayedMessage(id=message_id, communication_channel_id=communication_channel_id, **attrs)
        self.messages[message.id] = message
        return message

    def pending_groups(self, now: datetime) -> List[Tuple[Any, Any]]:
        """Distinct (channel, root account) pairs with messages due by `now`."""
        groups: List[Tuple[Any, Any]] = []
        for message in self._due(now):
            key = (message.communication_channel_id, message.root_account_id)
            if key not in groups:
                groups.append(key)
        return groups

    def ids_for_batch(self, communication_channel_id: Any, root_account_id: Any, now: datetime) -> List[int]:
        return [
            m.id for m in self._due(now)
            if m.communication_channel_id == communication_channel_id and m.root_account_id == root_account_id
        ]

    def mark_sent(self, ids: Iterable[int], now: datetime) -> List[int]:
        """Mark the still-pending messages among `ids` sent; return the ones marked."""
        sent = []
        for message_id in ids:
            message = self.messages.get(message_id)
            if message is None or message.workflow_state != "pending":
                continue
            message.workflow_state = "sent"
            message.batched_at = now
            sent.append(message_id)
        return sent

    def summarize(self, ids: List[int]) -> Optional[SummaryMessage]:
        messages = [self.messages[i] for i in ids if i in self.messages]
        if not messages:
            return None
        first = messages[0]
        summary = SummaryMessage(
            communication_channel_id=first.communication_channel_id,
            root_account_id=first.root_account_id,
            delayed_message_ids=[m.id for m in messages],
            body="\n".join(m.summary for m in messages if m.summary),
        )
        self.summaries.append(summary)
        logger.info("[messaging] summary of %d message(s) for channel %s",
                    len(messages), first.communication_channel_id)
        return summary

    def _due(self, now: datetime) -> List[DelayedMessage]:
        return sorted(
            (m for m in self.messages.values() if m.workflow_state == "pending" and m.send_at <= now),
            key=lambda m: m.id,
        )


class SummaryMessageConsolidator:
    """Queue summarize jobs for every delayed message that is due."""

    def __init__(
        self,
        store: DelayedMessageStore,
        queue: JobQueue,
        batch_size: int = DEFAULT_BATCH_SIZE,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.queue = queue
        self.batch_size = batch_size
        self._clock = now or _now

    def process(self) -> int:
        now = self._clock()
        groups = self.store.pending_groups(now)

        id_batches: List[List[int]] = []
        for cc_id, root_account_id in groups:
            id_batches.append(self.delayed_message_ids_for_batch(cc_id, root_account_id, now))
            if len(id_batches) >= self.batch_size:
                self.delay_summarize(id_batches, now)
                id_batches = []
        if id_batches:
            self.delay_summarize(id_batches, now)

        logger.info("[messaging] consolidated %d group(s)", len(groups))
        return len(groups)

    def delayed_message_ids_for_batch(self, cc_id: Any, root_account_id: Any, now: datetime) -> List[int]:
        return self.store.ids_for_batch(cc_id, root_account_id, now)

    def delay_summarize(self, id_batches: List[List[int]], now: datetime) -> None:
        all_ids = [i for batch in id_batches for i in batch]
        # another run may have sent some of these already
        sent = set(self.store.mark_sent(all_ids, now))
        with self.queue.serial_batch():
            for ids in id_batches:
                ids = [i for i in ids if i in sent]
                if ids:
                    self.queue.enqueue(self.store.summarize, ids, tag="DelayedMessage.summarize")


# ============================================================================
# Conversation Message Participants
# ============================================================================

@dataclass
class ConversationMessageParticipant:
    conversation_message_id: int
    user_id: Any
    workflow_state: Optional[str] = "active"


def active(participants: Iterable[ConversationMessageParticipant]) -> List[ConversationMessageParticipant]:
    """Participants not soft-deleted; a missing workflow state counts as active."""
    return [p for p in participants if p.workflow_state != "deleted"]


def deleted(participants: Iterable[ConversationMessageParticipant]) -> List[ConversationMessageParticipant]:
    return [p for p in participants if p.workflow_state == "deleted"]


def remove_messages(
    participants: Iterable[ConversationMessageParticipant],
    user_id: Any,
    message_ids: Iterable[int],
) -> int:
    """Soft-delete `message_ids` for one user. Other users keep their copies."""
    targets = set(message_ids)
    count = 0
    for participant in participants:
        if participant.user_id == user_id and participant.conversation_message_id in targets:
            participant.workflow_state = "deleted"
            count += 1
    return count
