"""请求与评审模型定义 - 管理员请求、审阅者申请、信任列表排名。"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.db import Base
from helpdesk.models.enums import AdminAction, RequestState
from helpdesk.models.user import User


class AdminRequest(Base):
    """管理员/教师发起的账户或角色变更请求。

    ``context`` 在 UpdateRole 时必填，保存被请求的角色位。
    ``version`` 每次状态变更自增，用于乐观并发控制。
    """

    __tablename__ = "admin_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[AdminAction] = mapped_column(Enum(AdminAction), nullable=False)
    state: Mapped[RequestState] = mapped_column(
        Enum(RequestState), default=RequestState.PENDING, nullable=False
    )
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    context: Mapped[Optional[int]] = mapped_column(Integer)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    requester: Mapped[User] = relationship(foreign_keys=[requester_id])
    target: Mapped[User] = relationship(foreign_keys=[target_id])

    def __repr__(self) -> str:
        return (
            f"<AdminRequest(id={self.id}, type={self.type.value}, "
            f"state={self.state.value}, target_id={self.target_id})>"
        )


class ReviewerRequest(Base):
    """学生申请成为审阅者，由教师审批。

    ``status``：None 待定，True 通过，False 拒绝。通过后由调用方授予 REVIEWER 位。
    """

    __tablename__ = "reviewer_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    instructor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    status: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    requester: Mapped[User] = relationship(foreign_keys=[requester_id])
    instructor: Mapped[Optional[User]] = relationship(foreign_keys=[instructor_id])

    def __repr__(self) -> str:
        return f"<ReviewerRequest(id={self.id}, requester_id={self.requester_id}, status={self.status})>"


# “已加入信任列表但尚未排名”的哨兵值
UNRANKED = 2**31 - 1


class Review(Base):
    """信任列表条目，复合主键 (reviewer_id, user_id)。

    ``user_id`` 是列表所有者，``rating`` 是审阅者在该列表中的 1 起始名次
    （越小越受信任），不是星级评分。
    """

    __tablename__ = "reviews"

    reviewer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    rating: Mapped[int] = mapped_column(Integer, default=UNRANKED, nullable=False)

    reviewer: Mapped[User] = relationship(foreign_keys=[reviewer_id])
    user: Mapped[User] = relationship(foreign_keys=[user_id])

    @property
    def is_ranked(self) -> bool:
        return self.rating != UNRANKED

    def __repr__(self) -> str:
        return f"<Review(reviewer_id={self.reviewer_id}, user_id={self.user_id}, rating={self.rating})>"
