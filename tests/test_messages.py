import pytest

from helpdesk.core.exceptions import ValidationError
from helpdesk.models import Announcement, Answer, Message, Question, ReviewerRequest
from helpdesk.repositories import Announcements, Answers, Messages, Questions, ReviewerRequests
from helpdesk.utils.search import keyword_score, rank_by_keyword, tokenize


def test_announcements(session, admin):
    announcements = Announcements(session)
    created = announcements.create(
        Announcement(title="Exam schedule", message=Message(user_id=admin.id, content="Finals start on Monday"))
    )
    session.commit()
    assert announcements.get_by_id(created.id).message.content == "Finals start on Monday"

    with pytest.raises(ValidationError):
        announcements.create(Announcement(title="Hey", message=Message(user_id=admin.id, content="Too short title")))

    announcements.delete(created.id)
    session.commit()
    assert announcements.get_all() == []


def test_bare_messages(session, student):
    messages = Messages(session)
    with pytest.raises(ValidationError):
        messages.create(Message(user_id=student.id, content="   "))
    with pytest.raises(ValidationError):
        messages.create(Message(user_id=0, content="hello"))
    created = messages.create(Message(user_id=student.id, content="hello"))
    assert created.id is not None


def test_answers_by_user_and_search(session, student, reviewer):
    question = Questions(session).create(
        Question(title="Big O basics", message=Message(user_id=student.id, content="What is amortized complexity?"))
    )
    answers = Answers(session)
    mine = answers.create(
        Answer(message=Message(user_id=reviewer.id, content="Average cost over a sequence of operations"), question_id=question.id)
    )
    answers.create(
        Answer(message=Message(user_id=student.id, content="Thanks, makes sense now"), parent_answer_id=mine.id)
    )
    session.commit()

    assert [a.id for a in answers.get_answers_by_user(reviewer.id)] == [mine.id]
    assert [a.id for a in answers.search_answers("sequence")] == [mine.id]
    assert [a.id for a in answers.search_answers("operatoins")] == [mine.id]


def test_pending_reviewer_requests(session, student, instructor, make_user):
    other = make_user("student02")
    requests = ReviewerRequests(session)
    first = requests.create(ReviewerRequest(requester_id=student.id, instructor_id=instructor.id))
    second = requests.create(ReviewerRequest(requester_id=other.id, instructor_id=instructor.id))
    session.commit()
    requests.accept_request(first.id)

    assert [r.id for r in requests.get_pending_requests()] == [second.id]
    assert [r.id for r in requests.get_requests_by_user(student.id)] == [first.id]
    assert [r.id for r in requests.get_requests_by_instructor(instructor.id)] == [first.id, second.id]


# === search helpers ===

def test_tokenize():
    assert tokenize("In-order, traversal!") == ["in", "order", "traversal"]
    assert tokenize(None) == []


def test_keyword_score():
    assert keyword_score("tree", ["Binary tree"]) == 1.0
    assert keyword_score("", ["Binary tree"]) == 0.0
    assert 0 < keyword_score("bianry", ["Binary tree"]) < 1
    assert keyword_score("graph", ["Binary tree"]) == 0.0


def test_rank_by_keyword_prefers_exact_hits():
    items = ["a binary heap", "binary tree", "unrelated"]
    ranked = rank_by_keyword(items, "binary tree", lambda s: (s,))
    assert ranked[0] == "binary tree"
    assert "unrelated" not in ranked
