"""核心 SQLAlchemy 模型定义。"""

from helpdesk.models.enums import AdminAction, RequestState
from helpdesk.models.message import (
    Announcement,
    Answer,
    Message,
    PrivateMessage,
    Question,
    ReadMessage,
    StaffMessage,
)
from helpdesk.models.request import UNRANKED, AdminRequest, Review, ReviewerRequest
from helpdesk.models.user import Invite, OneTimePassword, User

__all__ = [
    "AdminAction",
    "AdminRequest",
    "Announcement",
    "Answer",
    "Invite",
    "Message",
    "OneTimePassword",
    "PrivateMessage",
    "Question",
    "ReadMessage",
    "RequestState",
    "Review",
    "ReviewerRequest",
    "StaffMessage",
    "UNRANKED",
    "User",
]
