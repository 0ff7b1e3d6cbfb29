# tests/test_polling.py
"""
Tests for polling.py - poll sessions and submissions
"""
import pytest

from marvin.errors import RecordInvalid
from marvin.polling import Poll, PollSession, PollSubmissionRegistry


@pytest.fixture
def poll():
    poll = Poll(id=1, user_id=10, question="Which planet is largest?")
    poll.add_choice(1, "Jupiter", is_correct=True)
    poll.add_choice(2, "Mars")
    return poll


@pytest.fixture
def session(poll):
    session = PollSession(id=1, poll=poll, course_id=5)
    session.publish()
    return session


@pytest.fixture
def submissions():
    return PollSubmissionRegistry()


class TestPoll:
    def test_choice_positions(self, poll):
        assert [(c.text, c.position) for c in poll.poll_choices] == [("Jupiter", 1), ("Mars", 2)]
        assert poll.poll_choices[0].poll is poll


class TestSubmissions:
    def test_create(self, poll, session, submissions):
        submission = submissions.create(poll, poll.poll_choices[0], "student1", session)

        assert submission.id == 1
        assert session.poll_submissions == [submission]

    def test_results(self, poll, session, submissions):
        jupiter, mars = poll.poll_choices
        submissions.create(poll, jupiter, "s1", session)
        submissions.create(poll, jupiter, "s2", session)
        submissions.create(poll, mars, "s3", session)

        assert session.results() == {1: 2, 2: 1}

    def test_one_choice_per_session(self, poll, session, submissions):
        submissions.create(poll, poll.poll_choices[0], "student1", session)

        with pytest.raises(RecordInvalid) as excinfo:
            submissions.create(poll, poll.poll_choices[1], "student1", session)

        assert excinfo.value.errors == {"user": ["can only submit one choice per poll session"]}

    def test_same_user_in_new_session(self, poll, session, submissions):
        submissions.create(poll, poll.poll_choices[0], "student1", session)
        second = PollSession(id=2, poll=poll, course_id=5)
        second.publish()

        submissions.create(poll, poll.poll_choices[1], "student1", second)

        assert len(submissions.submissions) == 2

    def test_closed_session(self, poll, session, submissions):
        session.close()

        with pytest.raises(RecordInvalid) as excinfo:
            submissions.create(poll, poll.poll_choices[0], "student1", session)

        assert excinfo.value.errors == {"base": ["This poll session is not open for submissions"]}

    def test_choice_from_another_poll(self, poll, session, submissions):
        other = Poll(id=2, user_id=10, question="Other?")
        stray = other.add_choice(9, "Nope")

        with pytest.raises(RecordInvalid) as excinfo:
            submissions.create(poll, stray, "student1", session)

        assert excinfo.value.errors == {"base": ["That poll choice does not belong to the existing poll"]}

    def test_presence(self, submissions):
        with pytest.raises(RecordInvalid) as excinfo:
            submissions.create()

        assert excinfo.value.full_messages == [
            "Poll can't be blank",
            "Poll choice can't be blank",
            "User can't be blank",
            "Poll session can't be blank",
        ]
        assert submissions.submissions == []
