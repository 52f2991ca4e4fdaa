import pytest

from helpdesk.core import validators
from helpdesk.core.exceptions import AuthorizationError, ValidationError
from helpdesk.core.roles import Role, RoleSet
from helpdesk.models import (
    AdminAction,
    AdminRequest,
    Answer,
    Message,
    PrivateMessage,
    Question,
    RequestState,
    Review,
    ReviewerRequest,
    StaffMessage,
    User,
)


def user(user_id, *roles):
    return User(id=user_id, username=f"user{user_id:03d}", roles=int(RoleSet.of(*roles)))


def answer(question_id=None, parent_answer_id=None, content="A sufficiently long answer"):
    return Answer(
        message=Message(user_id=1, content=content),
        question_id=question_id,
        parent_answer_id=parent_answer_id,
    )


def admin_request(requester_id=1, action=AdminAction.UPDATE_ROLE, context=None, reason="Needs access"):
    return AdminRequest(
        requester_id=requester_id,
        target_id=2,
        type=action,
        state=RequestState.PENDING,
        reason=reason,
        context=context,
    )


# === Questions / answers ===

def test_valid_question():
    q = Question(title="How do I", message=Message(user_id=1, content="Explain recursion please"))
    validators.validate_question(q)


@pytest.mark.parametrize(
    "title,content",
    [
        ("Hi", "Explain recursion please"),
        ("x" * 101, "Explain recursion please"),
        ("   ", "Explain recursion please"),
        ("Valid title", "too short"),
        ("Valid title", "y" * 2001),
    ],
)
def test_invalid_question(title, content):
    q = Question(title=title, message=Message(user_id=1, content=content))
    with pytest.raises(ValidationError):
        validators.validate_question(q)


def test_answer_requires_exactly_one_parent():
    with pytest.raises(ValidationError):
        validators.validate_answer(answer(question_id=1, parent_answer_id=2))
    with pytest.raises(ValidationError):
        validators.validate_answer(answer())
    validators.validate_answer(answer(question_id=1))
    validators.validate_answer(answer(parent_answer_id=2))


def test_answer_content_bounds():
    with pytest.raises(ValidationError):
        validators.validate_answer(answer(question_id=1, content="short"))


def test_answer_requires_positive_user():
    a = answer(question_id=1)
    a.message.user_id = 0
    with pytest.raises(ValidationError):
        validators.validate_answer(a)


def test_private_message_requires_exactly_one_parent():
    pm = PrivateMessage(message=Message(user_id=1, content="hi"), question_id=1, parent_private_message_id=1)
    with pytest.raises(ValidationError):
        validators.validate_private_message(pm)
    pm.parent_private_message_id = None
    validators.validate_private_message(pm)


def test_staff_message_requires_staff_role():
    sm = StaffMessage(message=Message(user_id=1, content="hello"), user_id=1, staff_id=2)
    with pytest.raises(AuthorizationError):
        validators.validate_staff_message(sm, user(1, Role.USER), user(2, Role.USER))
    validators.validate_staff_message(sm, user(1, Role.USER), user(2, Role.STAFF))


# === Reviews / requests ===

def test_review_requires_reviewer_role():
    review = Review(reviewer_id=1, user_id=2, rating=1)
    with pytest.raises(ValidationError):
        validators.validate_review(review, user(1, Role.STUDENT), user(2, Role.STUDENT))
    validators.validate_review(review, user(1, Role.REVIEWER), user(2, Role.STUDENT))


def test_review_parties_must_differ():
    review = Review(reviewer_id=1, user_id=1, rating=1)
    with pytest.raises(ValidationError):
        validators.validate_review(review, user(1, Role.REVIEWER), user(1, Role.REVIEWER))


def test_review_rank_must_be_positive():
    review = Review(reviewer_id=1, user_id=2, rating=0)
    with pytest.raises(ValidationError):
        validators.validate_review(review, user(1, Role.REVIEWER), user(2))


def test_reviewer_request_rules():
    rr = ReviewerRequest(requester_id=1, instructor_id=2)
    with pytest.raises(ValidationError):
        validators.validate_reviewer_request(rr, user(1, Role.STUDENT), user(2, Role.STUDENT))
    validators.validate_reviewer_request(rr, user(1, Role.STUDENT), user(2, Role.INSTRUCTOR), creating=True)

    rr.status = True
    with pytest.raises(ValidationError):
        validators.validate_reviewer_request(rr, user(1), user(2, Role.INSTRUCTOR), creating=True)


def test_update_role_request_requires_context():
    requester, target = user(1, Role.ADMIN), user(2, Role.STUDENT)
    with pytest.raises(ValidationError):
        validators.validate_admin_request(admin_request(context=None), requester, target)
    validators.validate_admin_request(admin_request(context=Role.REVIEWER.bit), requester, target)


def test_update_role_request_rejects_unknown_role():
    with pytest.raises(ValidationError):
        validators.validate_admin_request(
            admin_request(context=3), user(1, Role.ADMIN), user(2)
        )


def test_admin_request_by_student_is_rejected():
    request = admin_request(action=AdminAction.DELETE_USER)
    with pytest.raises(AuthorizationError):
        validators.validate_admin_request(request, user(1, Role.STUDENT), user(2))
    # 角色失败同时也是一种校验失败
    with pytest.raises(ValidationError):
        validators.validate_admin_request(request, user(1, Role.STUDENT), user(2))


def test_admin_request_reason_bounds():
    with pytest.raises(ValidationError):
        validators.validate_admin_request(
            admin_request(action=AdminAction.DELETE_USER, reason="no"), user(1, Role.INSTRUCTOR), user(2)
        )


# === Credentials ===

@pytest.mark.parametrize("value", ["alice_01", "bob.smith", "Carol99"])
def test_valid_usernames(value):
    validators.validate_username(value)


@pytest.mark.parametrize("value", ["", "abc", "1alice", "alice!", "a" * 19])
def test_invalid_usernames(value):
    with pytest.raises(ValidationError):
        validators.validate_username(value)


def test_names_and_emails():
    validators.validate_name("Alice")
    with pytest.raises(ValidationError):
        validators.validate_name("Al1ce")
    validators.validate_email("alice.smith@uni.edu")
    for bad in ["alice", "alice@", "alice@localhost", "al ice@uni.edu", "alice@-uni.edu"]:
        with pytest.raises(ValidationError):
            validators.validate_email(bad)


def test_password_rules():
    validators.validate_password("Secret#123")
    with pytest.raises(ValidationError, match="at least 8"):
        validators.validate_password("Se#1a")
    with pytest.raises(ValidationError, match="Missing special character"):
        validators.validate_password("Secret1234")
    with pytest.raises(ValidationError, match="invalid character"):
        validators.validate_password("Secret 12#")
