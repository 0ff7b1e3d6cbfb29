"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

polling.py

In-class polls: a teacher's question with choices, run in sessions that
students submit one choice to.
"""

from __future__ import annotations

import itertools
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from marvin.errors import RecordInvalid


logger = logging.getLogger(__name__)


@dataclass
class Poll:
    id: int
    user_id: Any
    question: str
    description: Optional[str] = None
    poll_choices: List["PollChoice"] = field(default_factory=list)

    def add_choice(self, choice_id: int, text: str, is_correct: bool = False) -> "PollChoice":
        choice = PollChoice(id=choice_id, poll=self, text=text, is_correct=is_correct,
                            position=len(self.poll_choices) + 1)
        self.poll_choices.append(choice)
        return choice


@dataclass
class PollChoice:
    id: int
    poll: Optional[Poll] = field(repr=False, compare=False)
    text: str
    is_correct: bool = False
    position: Optional[int] = None


@dataclass
class PollSession:
    id: int
    poll: Poll
    course_id: Any
    course_section_id: Any = None
    is_published: bool = False
    has_public_results: bool = False
    poll_submissions: List["PollSubmission"] = field(default_factory=list)

    def publish(self) -> None:
        self.is_published = True

    def close(self) -> None:
        self.is_published = False

    def results(self) -> Dict[int, int]:
        """Submission counts by poll choice id."""
        return dict(Counter(s.poll_choice.id for s in self.poll_submissions))


@dataclass
class PollSubmission:
    id: int
    poll: Poll
    poll_choice: PollChoice
    user: Any
    poll_session: PollSession = field(repr=False, compare=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PollSubmissionRegistry:
    """Creates and keeps poll submissions, enforcing their rules."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.submissions: List[PollSubmission] = []

    def create(
        self,
        poll: Optional[Poll] = None,
        poll_choice: Optional[PollChoice] = None,
        user: Any = None,
        poll_session: Optional[PollSession] = None,
    ) -> PollSubmission:
        errors: Dict[str, List[str]] = {}
        if poll is None:
            errors["poll"] = ["can't be blank"]
        if poll_choice is None:
            errors["poll_choice"] = ["can't be blank"]
        if user is None:
            errors["user"] = ["can't be blank"]
        if poll_session is None:
            errors["poll_session"] = ["can't be blank"]

        if user is not None and poll_session is not None and self._submitted(user, poll_session):
            errors.setdefault("user", []).append("can only submit one choice per poll session")
        if poll_session is not None and not poll_session.is_published:
            errors.setdefault("base", []).append("This poll session is not open for submissions")
        if poll is not None and poll_choice is not None and poll_choice.poll is not poll:
            errors.setdefault("base", []).append("That poll choice does not belong to the existing poll")

        if errors:
            raise RecordInvalid(errors)

        submission = PollSubmission(
            id=next(self._ids),
            poll=poll,
            poll_choice=poll_choice,
            user=user,
            poll_session=poll_session,
        )
        self.submissions.append(submission)
        poll_session.poll_submissions.append(submission)
        logger.debug("[polling] submission %s for session %s", submission.id, poll_session.id)
        return submission

    def _submitted(self, user: Any, poll_session: PollSession) -> bool:
        return any(s.user == user and s.poll_session is poll_session for s in self.submissions)
