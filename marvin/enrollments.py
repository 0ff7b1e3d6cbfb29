"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

enrollments.py

Course enrollments, their scores and the side effects of changing them.

Overriding a final grade updates the enrollment's Score for the course
(or one grading period), emits a grade_override live event and, when an
updating user is known, leaves a GradeChangeRecord for auditing.

With pace plans enabled, new student enrollments and start date changes
queue a republish of the course pace plan. Students with their own
published pace plan get that plan republished instead.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from marvin.errors import RecordNotFound
from marvin.jobs import JobQueue


logger = logging.getLogger(__name__)

PACE_PLAN_FIELDS = ("start_at",)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LiveEvents:
    """Outbound event stream consumed by analytics."""

    @staticmethod
    def grade_override(score: "Score", old_score: Optional[float], enrollment: "Enrollment", course: "Course") -> None:
        logger.info(
            "[live_events] grade_override course=%s user=%s period=%s %s -> %s",
            course.id, enrollment.user_id, score.grading_period_id, old_score, score.override_score,
        )


# ============================================================================
# Records
# ============================================================================

@dataclass
class GradingPeriod:
    id: int
    title: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass
class Score:
    enrollment_id: int
    grading_period_id: Optional[int] = None
    current_score: Optional[float] = None
    final_score: Optional[float] = None
    override_score: Optional[float] = None

    @property
    def course_score(self) -> bool:
        return self.grading_period_id is None


@dataclass
class GradeChangeRecord:
    course_id: Any
    student_id: Any
    grader_id: Any
    grading_period_id: Optional[int]
    score_before: Optional[float]
    score_after: Optional[float]
    assignment_id: Optional[int] = None
    created_at: datetime = field(default_factory=_now)


@dataclass
class PacePlan:
    id: int
    course_id: Any
    user_id: Any = None
    workflow_state: str = "unpublished"
    published_at: Optional[datetime] = None

    @property
    def published(self) -> bool:
        return self.workflow_state == "active"

    def publish(self) -> None:
        self.workflow_state = "active"
        self.published_at = _now()
        logger.debug("[pace_plans] published plan %s", self.id)


# ============================================================================
# Courses
# ============================================================================

class Course:
    def __init__(
        self,
        id: Any,
        name: str = "",
        workflow_state: str = "available",
        enable_pace_plans: bool = False,
        queue: Optional[JobQueue] = None,
    ):
        self.id = id
        self.name = name
        self.workflow_state = workflow_state
        self.enable_pace_plans = enable_pace_plans
        self.queue = queue or JobQueue()
        self.grading_periods: List[GradingPeriod] = []
        self.enrollments: List[Enrollment] = []
        self.pace_plans: List[PacePlan] = []
        self.grade_change_records: List[GradeChangeRecord] = []
        self._ids = itertools.count(1)

    @property
    def student_enrollments(self) -> List["StudentEnrollment"]:
        return [e for e in self.enrollments if isinstance(e, StudentEnrollment)]

    def enroll_student(self, user_id: Any, start_at: Optional[datetime] = None) -> "StudentEnrollment":
        return self._enroll(StudentEnrollment, user_id, start_at=start_at)

    def enroll_teacher(self, user_id: Any) -> "TeacherEnrollment":
        return self._enroll(TeacherEnrollment, user_id)

    def _enroll(self, enrollment_class: type, user_id: Any, **attrs: Any) -> "Enrollment":
        enrollment = enrollment_class(id=next(self._ids), course=self, user_id=user_id, **attrs)
        self.enrollments.append(enrollment)
        enrollment.after_save(created=True, changed=set())
        return enrollment

    def add_grading_period(self, title: str, **attrs: Any) -> GradingPeriod:
        period = GradingPeriod(id=len(self.grading_periods) + 1, title=title, **attrs)
        self.grading_periods.append(period)
        return period

    def create_pace_plan(self, user_id: Any = None) -> PacePlan:
        plan = PacePlan(id=len(self.pace_plans) + 1, course_id=self.id, user_id=user_id)
        self.pace_plans.append(plan)
        return plan

    def published_pace_plan(self, user_id: Any = None) -> Optional[PacePlan]:
        for plan in self.pace_plans:
            if plan.user_id == user_id and plan.published:
                return plan
        return None

    def recompute_student_scores(self) -> None:
        """Make sure every student has a course score and one per grading period."""
        for enrollment in self.student_enrollments:
            enrollment.ensure_score(None)
            for period in self.grading_periods:
                enrollment.ensure_score(period.id)


# ============================================================================
# Enrollments
# ============================================================================

class Enrollment:
    type = "Enrollment"

    def __init__(
        self,
        id: int,
        course: Course,
        user_id: Any,
        workflow_state: str = "active",
        start_at: Optional[datetime] = None,
        last_attended_at: Optional[datetime] = None,
    ):
        self.id = id
        self.course = course
        self.user_id = user_id
        self.workflow_state = workflow_state
        self.start_at = start_at
        self.last_attended_at = last_attended_at
        self.scores: List[Score] = []

    @property
    def course_id(self) -> Any:
        return self.course.id

    def update(self, **changes: Any) -> None:
        changed = set()
        for name, value in changes.items():
            if not hasattr(self, name):
                raise AttributeError(f"{type(self).__name__} has no attribute '{name}'")
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed.add(name)
        self.after_save(created=False, changed=changed)

    def after_save(self, created: bool, changed: set) -> None:
        pass

    def find_score(self, grading_period_id: Optional[int] = None) -> Optional[Score]:
        for score in self.scores:
            if score.grading_period_id == grading_period_id:
                return score
        return None

    def ensure_score(self, grading_period_id: Optional[int]) -> Score:
        score = self.find_score(grading_period_id)
        if score is None:
            score = Score(enrollment_id=self.id, grading_period_id=grading_period_id)
            self.scores.append(score)
        return score


class TeacherEnrollment(Enrollment):
    type = "TeacherEnrollment"


class TaEnrollment(Enrollment):
    type = "TaEnrollment"


class ObserverEnrollment(Enrollment):
    type = "ObserverEnrollment"


class StudentEnrollment(Enrollment):
    type = "StudentEnrollment"

    def override_score(self, grading_period_id: Optional[int] = None) -> Optional[float]:
        score = self.find_score(grading_period_id)
        return score.override_score if score else None

    def update_override_score(
        self,
        override_score: Optional[float],
        grading_period_id: Optional[int] = None,
        updating_user: Any = None,
        record_grade_change: bool = True,
    ) -> Score:
        score = self.find_score(grading_period_id)
        if score is None:
            raise RecordNotFound(
                "Score not found",
                context={"enrollment": self.id, "grading_period_id": grading_period_id},
                suggestion="Recompute student scores for the course first",
            )

        old_score = score.override_score
        score.override_score = override_score
        if old_score == override_score:
            return score

        LiveEvents.grade_override(score, old_score, self, self.course)
        if record_grade_change and updating_user is not None:
            self.course.grade_change_records.append(GradeChangeRecord(
                course_id=self.course_id,
                student_id=self.user_id,
                grader_id=getattr(updating_user, "id", updating_user),
                grading_period_id=grading_period_id,
                score_before=old_score,
                score_after=override_score,
            ))
        return score

    def after_save(self, created: bool, changed: set) -> None:
        if not self.course.enable_pace_plans:
            return
        if not created and not changed.intersection(PACE_PLAN_FIELDS):
            return
        self.republish_pace_plan()

    def republish_pace_plan(self) -> None:
        course = self.course
        student_plan = course.published_pace_plan(self.user_id)
        if student_plan:
            course.queue.enqueue(student_plan.publish, singleton=f"pace_plan_republish:{course.id}:{self.user_id}")
            return
        course_plan = course.published_pace_plan()
        if course_plan:
            course.queue.enqueue(course_plan.publish, singleton=f"pace_plan_republish:{course.id}:")
