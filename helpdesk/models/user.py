"""用户模型定义 - 位掩码多角色，邀请码与一次性密码。"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.core.roles import Role, RoleSet
from helpdesk.db import Base


class User(Base):
    """用户模型。

    ``roles`` 为角色位掩码；``password_hash`` 只保存 argon2 哈希。
    系统中必须始终至少存在一个 ADMIN，由调用方保证。
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    roles: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def role_set(self) -> RoleSet:
        return RoleSet(self.roles or 0)

    def has_role(self, role: Role) -> bool:
        return self.role_set.has(role)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, roles={self.role_set!r})>"


class Invite(Base):
    """一次性注册邀请码，兑换时授予 ``roles``，创建后 ttl 秒内有效。"""

    __tablename__ = "invites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )
    roles: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)  # unix 秒

    def __repr__(self) -> str:
        return f"<Invite(id={self.id}, roles={self.roles}, created_at={self.created_at})>"


class OneTimePassword(Base):
    """一次性密码，``otp_value`` 为哈希值，成功校验后原子地标记为已用。"""

    __tablename__ = "one_time_passwords"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    creator_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    otp_value: Mapped[str] = mapped_column(String(255), nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<OneTimePassword(id={self.id}, target_id={self.target_id}, used={self.is_used})>"
