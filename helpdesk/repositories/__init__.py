"""数据访问层：每个仓储绑定一个 Session，在调用方的事务内 flush。"""

from helpdesk.repositories.base import (
    CompositeKeyRepository,
    Repository,
    TransientStorageError,
    storage_errors,
)
from helpdesk.repositories.messages import (
    Announcements,
    Answers,
    Messages,
    PrivateMessages,
    Questions,
    StaffMessages,
)
from helpdesk.repositories.read_messages import ReadMessages
from helpdesk.repositories.requests import AdminRequests, ReviewerRequests
from helpdesk.repositories.reviews import Reviews
from helpdesk.repositories.users import Invites, OneTimePasswords, Users

__all__ = [
    "AdminRequests",
    "Announcements",
    "Answers",
    "CompositeKeyRepository",
    "Invites",
    "Messages",
    "OneTimePasswords",
    "PrivateMessages",
    "Questions",
    "ReadMessages",
    "Repository",
    "ReviewerRequests",
    "Reviews",
    "StaffMessages",
    "TransientStorageError",
    "Users",
    "storage_errors",
]
