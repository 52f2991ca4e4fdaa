import pytest
from sqlalchemy import update

from helpdesk.core.exceptions import StorageError, ValidationError
from helpdesk.models import Answer, Message, Question
from helpdesk.repositories import Answers, Questions, storage_errors


@pytest.fixture
def thread(session, student, reviewer):
    question = Questions(session).create(
        Question(title="Sorting help", message=Message(user_id=student.id, content="Which sort is stable by default?"))
    )
    answers = Answers(session)
    first = answers.create(Answer(message=Message(user_id=reviewer.id, content="Merge sort is stable"), question_id=question.id))
    second = answers.create(Answer(message=Message(user_id=reviewer.id, content="Timsort is stable too"), question_id=question.id))
    session.commit()
    return question, first, second


def pinned_ids(session, question_id):
    return [
        a.id for a in Answers(session).get_replies_to_question(question_id) if a.is_pinned
    ]


def test_pinning_second_answer_unpins_first(session, thread):
    question, first, second = thread
    answers = Answers(session)

    answers.toggle_pin(first.id)
    session.commit()
    assert pinned_ids(session, question.id) == [first.id]

    answers.toggle_pin(second.id)
    session.commit()
    assert pinned_ids(session, question.id) == [second.id]
    assert answers.get_pinned_answer(question.id).id == second.id


def test_toggle_twice_unpins(session, thread):
    question, first, _ = thread
    answers = Answers(session)
    answers.toggle_pin(first.id)
    answers.toggle_pin(first.id)
    session.commit()
    assert pinned_ids(session, question.id) == []
    assert not Questions(session).has_pinned_answer(question.id)


def test_questions_without_pinned_answer(session, thread):
    question, first, _ = thread
    questions = Questions(session)
    assert [q.id for q in questions.get_questions_without_pinned_answer()] == [question.id]
    Answers(session).toggle_pin(first.id)
    session.commit()
    assert questions.get_questions_without_pinned_answer() == []
    assert questions.has_pinned_answer(question.id)


def test_reply_cannot_be_pinned(session, thread, student):
    _, first, _ = thread
    answers = Answers(session)
    reply = answers.create(
        Answer(message=Message(user_id=student.id, content="Thanks, that helped"), parent_answer_id=first.id)
    )
    session.commit()
    assert [r.id for r in answers.get_replies_to_answer(first.id)] == [reply.id]
    with pytest.raises(ValidationError):
        answers.toggle_pin(reply.id)


def test_toggle_missing_answer_returns_none(session):
    assert Answers(session).toggle_pin(12345) is None


def test_unique_index_rejects_second_pin(session, thread):
    question, first, second = thread
    Answers(session).toggle_pin(first.id)
    session.commit()

    # 绕过仓储直接写库时由部分唯一索引兜底
    with pytest.raises(StorageError):
        with storage_errors("raw pin"):
            session.execute(
                update(Answer)
                .where(Answer.id == second.id)
                .values(is_pinned=True)
                .execution_options(synchronize_session=False)
            )
    session.rollback()


def test_update_answer_content(session, thread):
    _, first, _ = thread
    answers = Answers(session)
    assert answers.update_answer_content(first.id, "Merge sort keeps equal keys in order")
    assert answers.get_by_id(first.id).content == "Merge sort keeps equal keys in order"
    assert not answers.update_answer_content(999, "Nothing to update here")
