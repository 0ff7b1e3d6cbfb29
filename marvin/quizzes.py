"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

quizzes.py

Classic quiz questions: answer parsing, submitted answers and the
lookups request handlers use to find a course and its quizzes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from bs4 import BeautifulSoup

from marvin.errors import RecordNotFound, Unauthorized, missing_record_error


logger = logging.getLogger(__name__)


# ============================================================================
# HTML Sanitizing
# ============================================================================

ALLOWED_TAGS = {
    "a", "abbr", "b", "blockquote", "br", "code", "div", "em", "h1", "h2",
    "h3", "h4", "h5", "h6", "hr", "i", "img", "li", "ol", "p", "pre", "span",
    "strong", "sub", "sup", "table", "tbody", "td", "th", "thead", "tr", "u",
    "ul", "audio", "video", "source", "track",
}
DROPPED_TAGS = {"script", "style", "iframe", "object", "embed"}
ALLOWED_ATTRIBUTES = {
    "href", "src", "alt", "title", "class", "id", "width", "height", "style",
    "target", "rel", "colspan", "rowspan", "controls", "poster", "kind",
    "srclang", "label", "lang", "dir",
}
URL_ATTRIBUTES = {"href", "src", "poster"}


def sanitize_html(html: Optional[str]) -> str:
    """Strip scripts, event handlers and javascript: URLs from user HTML."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(sorted(DROPPED_TAGS)):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue
        for name in list(tag.attrs):
            value = tag.attrs[name]
            if name.startswith("on") or (name not in ALLOWED_ATTRIBUTES and not name.startswith("data-")):
                del tag.attrs[name]
            elif name in URL_ATTRIBUTES and "".join(str(value).split()).lower().startswith("javascript:"):
                del tag.attrs[name]

    return str(soup)


# ============================================================================
# Question Data
# ============================================================================

class QuestionData(dict):
    """Question attributes as produced by the answer parsers."""

    @property
    def answers(self) -> List[Dict[str, Any]]:
        return self.setdefault("answers", [])


class AnswerParser:
    """Turn raw answer params into question data."""

    def __init__(self, answers: Iterable[Mapping[str, Any]]):
        self.answers = [dict(a) for a in answers]

    def parse(self, question: QuestionData) -> QuestionData:
        question["answers"] = [
            {
                "text": a.get("answer_text", ""),
                "comments": a.get("answer_comments", ""),
                "comments_html": sanitize_html(a.get("answer_comment_html")),
                "weight": float(a.get("answer_weight") or 0),
            }
            for a in self.answers
        ]
        return question


class Essay(AnswerParser):
    """Essay questions carry comments but no answers."""

    def parse(self, question: QuestionData) -> QuestionData:
        first = self.answers[0] if self.answers else {}
        question["comments"] = first.get("answer_comments", "")
        question["comments_html"] = sanitize_html(first.get("answer_comment_html"))
        question["answers"] = []
        return question


class FileUpload(Essay):
    """File upload questions are graded like essays."""
    pass


@dataclass
class FileUploadAnswer:
    question_id: Any
    points_possible: float
    answer_data: Mapping[str, Any]

    @property
    def answer_details(self) -> Dict[str, Any]:
        return {"attachment_ids": self.attachment_ids}

    @property
    def attachment_ids(self) -> Optional[List[str]]:
        ids = self.answer_data.get(f"question_{self.question_id}")
        if not ids:
            return None
        ids = [i for i in ids if str(i).strip()]
        return ids or None


# ============================================================================
# Request Filters
# ============================================================================

@dataclass
class Quiz:
    id: int
    title: str = ""
    course_id: Optional[int] = None


def require_quiz(quizzes: Iterable[Any], params: Mapping[str, Any]) -> Any:
    """Find the quiz named by `quiz_id` (or `id`) in `params`."""
    quiz_id = params["quiz_id"] if "quiz_id" in params else params.get("id")
    for quiz in quizzes:
        if str(quiz.id) == str(quiz_id):
            return quiz
    raise RecordNotFound("Quiz not found", context={"quiz_id": quiz_id})


def require_course(
    courses: Iterable[Any],
    params: Dict[str, Any],
    user: Any = None,
    authorize: Optional[Callable[[Any, Any, str], bool]] = None,
) -> Any:
    """
    Find the active course named by `course_id` and make it the context.

    Sets `context_id`/`context_type` in `params` and raises Unauthorized
    when `authorize(course, user, "read")` says no.
    """
    course_id = params.get("course_id")
    course = next(
        (c for c in courses
         if str(c.id) == str(course_id) and getattr(c, "workflow_state", "available") != "deleted"),
        None,
    )
    if course is None:
        raise missing_record_error("Course", course_id)

    params["context_id"] = course_id
    params["context_type"] = "Course"
    if authorize is not None and not authorize(course, user, "read"):
        logger.info("[quizzes] user %s may not read course %s", getattr(user, "id", user), course_id)
        raise Unauthorized("You are not authorized to read this course", context={"course_id": course_id})
    return course
