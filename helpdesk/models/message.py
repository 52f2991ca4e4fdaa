"""消息模型定义 - 问题、回答、私信、公告、员工消息与已读标记。

``Message`` 是最小的文本单元，每条消息恰好被一个宿主行（Question / Answer /
PrivateMessage / Announcement / StaffMessage）一对一引用；删除消息会级联删除宿主行。
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.db import Base


class Message(Base):
    """消息正文。"""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, user_id={self.user_id})>"


class Question(Base):
    """学生提出的问题。标题 5-100 字符，正文 10-2000 字符。"""

    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)

    message: Mapped[Message] = relationship(lazy="joined")

    @property
    def user_id(self) -> int:
        return self.message.user_id

    @property
    def content(self) -> str:
        return self.message.content

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, title={self.title!r})>"


class Answer(Base):
    """回答：只能指向问题或父回答之一。``is_pinned`` 标记为问题的采纳解。"""

    __tablename__ = "answers"
    __table_args__ = (
        # 每个问题至多一个置顶回答
        Index(
            "uq_answers_pinned_per_question",
            "question_id",
            unique=True,
            sqlite_where=text("is_pinned = 1"),
            postgresql_where=text("is_pinned"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    question_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE")
    )
    parent_answer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("answers.id", ondelete="CASCADE")
    )
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    message: Mapped[Message] = relationship(lazy="joined")

    @property
    def user_id(self) -> int:
        return self.message.user_id

    @property
    def content(self) -> str:
        return self.message.content

    def __repr__(self) -> str:
        return (
            f"<Answer(id={self.id}, question_id={self.question_id}, "
            f"parent_answer_id={self.parent_answer_id}, pinned={self.is_pinned})>"
        )


class PrivateMessage(Base):
    """私信：与 Answer 相同，只能指向问题或父私信之一。"""

    __tablename__ = "private_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    question_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE")
    )
    parent_private_message_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("private_messages.id", ondelete="CASCADE")
    )

    message: Mapped[Message] = relationship(lazy="joined")

    @property
    def user_id(self) -> int:
        return self.message.user_id

    def __repr__(self) -> str:
        return f"<PrivateMessage(id={self.id}, question_id={self.question_id})>"


class Announcement(Base):
    """管理员/教师发布的公告。"""

    __tablename__ = "announcements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)

    message: Mapped[Message] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<Announcement(id={self.id}, title={self.title!r})>"


class StaffMessage(Base):
    """普通用户与员工之间的会话消息。"""

    __tablename__ = "staff_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    staff_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    message: Mapped[Message] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<StaffMessage(id={self.id}, user_id={self.user_id}, staff_id={self.staff_id})>"


class ReadMessage(Base):
    """已读标记，复合主键 (user_id, message_id)。"""

    __tablename__ = "read_messages"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    message_id: Mapped[int] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), primary_key=True
    )

    def __repr__(self) -> str:
        return f"<ReadMessage(user_id={self.user_id}, message_id={self.message_id})>"
