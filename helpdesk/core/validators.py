"""实体与凭据校验。

全部为纯函数：遇到第一条被违反的规则即抛出 ``ValidationError``，
不做任何持久化调用。涉及角色的检查需要调用方传入已加载的用户对象。
"""

from __future__ import annotations

from typing import Optional

from helpdesk.core.exceptions import AuthorizationError, ValidationError
from helpdesk.core.roles import ALL_ROLES, Role
from helpdesk.models.enums import AdminAction
from helpdesk.models.message import (
    Announcement,
    Answer,
    Message,
    PrivateMessage,
    Question,
    StaffMessage,
)
from helpdesk.models.request import AdminRequest, Review, ReviewerRequest
from helpdesk.models.user import User

MIN_TITLE_LENGTH = 5
MAX_TITLE_LENGTH = 100
MIN_CONTENT_LENGTH = 10
MAX_CONTENT_LENGTH = 2000
MIN_MESSAGE_LENGTH = 1
MIN_REASON_LENGTH = 5
MAX_REASON_LENGTH = 500

MIN_USERNAME_LENGTH = 6
MAX_USERNAME_LENGTH = 18
MIN_PASSWORD_LENGTH = 8
PASSWORD_SPECIAL_CHARS = "!@#$%&"


def _require_length(value: Optional[str], low: int, high: int, message: str) -> None:
    if value is None or len(value) < low or len(value) > high:
        raise ValidationError(message)


def _require_text(value: Optional[str], message: str) -> None:
    if value is None or not value.strip():
        raise ValidationError(message)


def _require_positive_id(value: Optional[int], message: str) -> None:
    if value is None or value <= 0:
        raise ValidationError(message)


def _exactly_one(first: Optional[int], second: Optional[int], owner: str, a: str, b: str) -> None:
    if first is not None and second is not None:
        raise ValidationError(f"{owner} must reference either {a} OR {b}, not both.")
    if first is None and second is None:
        raise ValidationError(f"{owner} must reference either {a} OR {b}.")


# === 消息类实体 ===

def validate_message_content(content: Optional[str]) -> None:
    _require_text(content, "Message content cannot be empty.")
    _require_length(
        content,
        MIN_MESSAGE_LENGTH,
        MAX_CONTENT_LENGTH,
        f"Message content must be at most {MAX_CONTENT_LENGTH} characters.",
    )


def validate_message(message: Optional[Message]) -> None:
    if message is None:
        raise ValidationError("Message cannot be null.")
    _require_positive_id(message.user_id, "A valid userID is required for a message.")
    validate_message_content(message.content)


def validate_question(question: Optional[Question]) -> None:
    if question is None:
        raise ValidationError("Question cannot be null.")
    if question.message is None:
        raise ValidationError("Question must have a Message.")
    _require_positive_id(question.message.user_id, "A valid userID is required for a question.")
    _require_text(question.title, "Question title cannot be empty.")
    _require_text(question.message.content, "Question content cannot be empty.")
    _require_length(
        question.title,
        MIN_TITLE_LENGTH,
        MAX_TITLE_LENGTH,
        "Question title must be between 5 and 100 characters.",
    )
    _require_length(
        question.message.content,
        MIN_CONTENT_LENGTH,
        MAX_CONTENT_LENGTH,
        "Question content must be between 10 and 2000 characters.",
    )


def validate_answer(answer: Optional[Answer]) -> None:
    if answer is None:
        raise ValidationError("Answer cannot be null.")
    if answer.message is None:
        raise ValidationError("Answer must have a Message.")
    _require_positive_id(answer.message.user_id, "A valid userID is required for an answer.")
    _require_text(answer.message.content, "Answer content cannot be empty.")
    _exactly_one(
        answer.question_id, answer.parent_answer_id, "An answer", "a question", "another answer"
    )
    _require_length(
        answer.message.content,
        MIN_CONTENT_LENGTH,
        MAX_CONTENT_LENGTH,
        "Answer content must be between 10 and 2000 characters.",
    )


def validate_private_message(pm: Optional[PrivateMessage]) -> None:
    if pm is None:
        raise ValidationError("Private message cannot be null.")
    if pm.message is None:
        raise ValidationError("Private message must have a Message.")
    _require_positive_id(pm.message.user_id, "A valid userID is required for a private message.")
    _exactly_one(
        pm.question_id,
        pm.parent_private_message_id,
        "A private message",
        "a question",
        "another private message",
    )
    validate_message_content(pm.message.content)


def validate_announcement(announcement: Optional[Announcement]) -> None:
    if announcement is None:
        raise ValidationError("Announcement cannot be null.")
    validate_message(announcement.message)
    _require_text(announcement.title, "Announcement title cannot be empty.")
    _require_length(
        announcement.title,
        MIN_TITLE_LENGTH,
        MAX_TITLE_LENGTH,
        "Announcement title must be between 5 and 100 characters.",
    )


def validate_staff_message(
    staff_message: Optional[StaffMessage], user: Optional[User], staff: Optional[User]
) -> None:
    if staff_message is None:
        raise ValidationError("Staff message cannot be null.")
    validate_message(staff_message.message)
    if user is None:
        raise ValidationError("A staff message must have a user.")
    if staff is None:
        raise ValidationError("A staff message must have a staff member.")
    if not staff.has_role(Role.STAFF):
        raise AuthorizationError("The staff party of a staff message must hold the STAFF role.")


# === 评审与请求 ===

def validate_review(review: Optional[Review], reviewer: Optional[User], owner: Optional[User]) -> None:
    if review is None:
        raise ValidationError("Review cannot be null.")
    if reviewer is None:
        raise ValidationError("A review must have a reviewer.")
    if owner is None:
        raise ValidationError("A review must have a list owner.")
    _require_positive_id(reviewer.id, "A valid reviewer id is required.")
    _require_positive_id(owner.id, "A valid user id is required.")
    if reviewer.id == owner.id:
        raise ValidationError("A user cannot place themselves in their own trusted list.")
    if not reviewer.has_role(Role.REVIEWER):
        raise ValidationError("The reviewer must hold the REVIEWER role.")
    if review.rating is None or review.rating < 1:
        raise ValidationError("A review rank must be a positive position.")


def validate_reviewer_request(
    request: Optional[ReviewerRequest],
    requester: Optional[User],
    instructor: Optional[User],
    creating: bool = False,
) -> None:
    if request is None:
        raise ValidationError("Reviewer request cannot be null.")
    if requester is None:
        raise ValidationError("A reviewer request must have a requester.")
    if instructor is not None and not instructor.has_role(Role.INSTRUCTOR):
        raise ValidationError("The assigned instructor must hold the INSTRUCTOR role.")
    if creating and request.status is not None:
        raise ValidationError("A new reviewer request must be pending.")


def validate_admin_request(
    request: Optional[AdminRequest], requester: Optional[User], target: Optional[User]
) -> None:
    if request is None:
        raise ValidationError("Admin request cannot be null.")
    if requester is None:
        raise ValidationError("An admin request must have a requester.")
    if not requester.role_set.has_any((Role.ADMIN, Role.INSTRUCTOR)):
        raise AuthorizationError("Only admins or instructors can create admin requests.")
    if target is None:
        raise ValidationError("An admin request must have a target user.")
    if request.type is None:
        raise ValidationError("An admin request must have an action type.")
    if request.state is None:
        raise ValidationError("An admin request must have a state.")
    _require_text(request.reason, "An admin request must have a reason.")
    _require_length(
        request.reason,
        MIN_REASON_LENGTH,
        MAX_REASON_LENGTH,
        "Reason must be between 5 and 500 characters.",
    )
    if request.type == AdminAction.UPDATE_ROLE:
        if request.context is None:
            raise ValidationError("A role update request must specify the requested role.")
        if request.context not in {r.bit for r in ALL_ROLES}:
            raise ValidationError("The requested role is not a known role.")


# === 凭据 ===

def validate_username(value: Optional[str]) -> None:
    if not value:
        raise ValidationError("Username is empty")
    if len(value) < MIN_USERNAME_LENGTH:
        raise ValidationError("Username must be at least 6 characters")
    if len(value) > MAX_USERNAME_LENGTH:
        raise ValidationError("Username must be no more than 18 characters")
    if not value[0].isalpha():
        raise ValidationError("Username must start with a letter")
    for c in value[1:]:
        if not (c.isalnum() or c in "_."):
            raise ValidationError(f"Invalid character in username: {c}")


def validate_name(value: Optional[str]) -> None:
    if not value:
        raise ValidationError("Name is empty")
    if not value[0].isalpha():
        raise ValidationError("Name must start with a letter")
    for c in value:
        if not c.isalpha():
            raise ValidationError(f"Invalid character in name: {c}")


def validate_email(value: Optional[str]) -> None:
    if not value:
        raise ValidationError("Email is empty")
    local, sep, domain = value.partition("@")
    if not sep:
        raise ValidationError("Missing '@' symbol in email")
    for c in local:
        if not (c.isalnum() or c in "._-"):
            raise ValidationError(f"Invalid email format at character: {c}")
    if not domain:
        raise ValidationError("Domain part is empty")
    if not domain[0].isalnum():
        raise ValidationError(f"Invalid email format at character: {domain[0]}")
    for c in domain[1:]:
        if not (c.isalnum() or c in ".-"):
            raise ValidationError(f"Invalid email format at character: {c}")
    if "." not in domain:
        raise ValidationError("Domain must contain at least one dot")


def validate_password(value: Optional[str]) -> None:
    if not value:
        raise ValidationError("Password is empty")
    has_upper = has_lower = has_digit = has_special = False
    for c in value:
        if "A" <= c <= "Z":
            has_upper = True
        elif "a" <= c <= "z":
            has_lower = True
        elif "0" <= c <= "9":
            has_digit = True
        elif c in PASSWORD_SPECIAL_CHARS:
            has_special = True
        else:
            raise ValidationError(f"Password contains invalid character: {c}")
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password must be at least 8 characters")

    missing = []
    if not has_upper:
        missing.append("Missing uppercase letter.")
    if not has_lower:
        missing.append("Missing lowercase letter.")
    if not has_digit:
        missing.append("Missing numeric digit.")
    if not has_special:
        missing.append("Missing special character.")
    if missing:
        raise ValidationError(" ".join(missing))
