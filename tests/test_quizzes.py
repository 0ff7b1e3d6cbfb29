# tests/test_quizzes.py
"""
Tests for quizzes.py - answer parsing, file upload answers, request filters
"""
from dataclasses import dataclass

import pytest
from bs4 import BeautifulSoup

from marvin.errors import RecordNotFound, Unauthorized
from marvin.quizzes import (
    AnswerParser,
    Essay,
    FileUpload,
    FileUploadAnswer,
    QuestionData,
    Quiz,
    require_course,
    require_quiz,
    sanitize_html,
)


@dataclass
class Course:
    id: int
    workflow_state: str = "available"


class TestSanitizeHtml:
    def test_strips_scripts_and_handlers(self):
        html = '<p onclick="steal()">Hi<script>alert(1)</script></p>'

        assert sanitize_html(html) == "<p>Hi</p>"

    def test_drops_javascript_urls(self):
        assert sanitize_html('<a href=" javascript:alert(1)" title="t">x</a>') == '<a title="t">x</a>'

    def test_unwraps_unknown_tags(self):
        assert sanitize_html('<font color="red">red</font> text') == "red text"

    def test_keeps_data_attributes(self):
        html = '<span data-media_comment_id="0_abc" class="x">m</span>'

        span = BeautifulSoup(sanitize_html(html), "html.parser").span

        assert span.attrs == {"class": ["x"], "data-media_comment_id": "0_abc"}
        assert span.get_text() == "m"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert sanitize_html(value) == ""


class TestAnswerParsers:
    def test_essay_keeps_comments_only(self):
        answers = [{"answer_text": "ignored", "answer_comments": "Grade on clarity",
                    "answer_comment_html": "<p>Grade on <b>clarity</b></p><script>x()</script>"}]

        question = Essay(answers).parse(QuestionData())

        assert question["comments"] == "Grade on clarity"
        assert question["comments_html"] == "<p>Grade on <b>clarity</b></p>"
        assert question.answers == []

    def test_essay_without_answers(self):
        question = Essay([]).parse(QuestionData())

        assert question["comments"] == ""
        assert question["comments_html"] == ""

    def test_file_upload_is_parsed_like_essay(self):
        question = FileUpload([{"answer_comments": "Upload a PDF"}]).parse(QuestionData())

        assert question["comments"] == "Upload a PDF"
        assert question["answers"] == []

    def test_generic_answers(self):
        question = AnswerParser([
            {"answer_text": "4", "answer_weight": "100"},
            {"answer_text": "5"},
        ]).parse(QuestionData())

        assert [(a["text"], a["weight"]) for a in question.answers] == [("4", 100.0), ("5", 0.0)]


class TestFileUploadAnswer:
    def test_attachment_ids(self):
        answer = FileUploadAnswer(7, 2.0, {"question_7": ["12", "", "13"]})

        assert answer.attachment_ids == ["12", "13"]
        assert answer.answer_details == {"attachment_ids": ["12", "13"]}

    @pytest.mark.parametrize("data", [{}, {"question_7": []}, {"question_7": ["", " "]}])
    def test_no_attachments(self, data):
        answer = FileUploadAnswer(7, 2.0, data)

        assert answer.attachment_ids is None
        assert answer.answer_details == {"attachment_ids": None}


class TestRequireQuiz:
    def test_by_quiz_id(self):
        quiz = Quiz(3, "Midterm")

        assert require_quiz([Quiz(1), quiz], {"quiz_id": "3"}) is quiz

    def test_by_id(self):
        quiz = Quiz(3)

        assert require_quiz([quiz], {"id": 3}) is quiz

    def test_missing(self):
        with pytest.raises(RecordNotFound, match="Quiz not found"):
            require_quiz([Quiz(1)], {"quiz_id": "9"})


class TestRequireCourse:
    def test_sets_context(self):
        params = {"course_id": "5"}
        course = Course(5)

        assert require_course([course], params) is course
        assert params["context_id"] == "5"
        assert params["context_type"] == "Course"

    def test_deleted_course_is_missing(self):
        with pytest.raises(RecordNotFound, match="Course not found"):
            require_course([Course(5, workflow_state="deleted")], {"course_id": 5})

    def test_unknown_course(self):
        with pytest.raises(RecordNotFound):
            require_course([Course(5)], {"course_id": 6})

    def test_unauthorized(self):
        authorize = lambda course, user, right: False

        with pytest.raises(Unauthorized):
            require_course([Course(5)], {"course_id": 5}, user="student", authorize=authorize)

    def test_authorized(self):
        calls = []

        def authorize(course, user, right):
            calls.append((course.id, user, right))
            return True

        require_course([Course(5)], {"course_id": 5}, user="teacher", authorize=authorize)

        assert calls == [(5, "teacher", "read")]
