"""用户、邀请码与一次性密码仓储。"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, func, select, update

from helpdesk.config import get_settings
from helpdesk.core.exceptions import ValidationError
from helpdesk.core.roles import Role
from helpdesk.core.security import current_time_seconds, generate_code, hash_secret, verify_secret
from helpdesk.models import Invite, OneTimePassword, Review, User
from helpdesk.repositories.base import Repository

logger = logging.getLogger(__name__)


class Users(Repository[User]):
    model = User

    def validate(self, entity: User, creating: bool) -> None:
        if entity is None:
            raise ValidationError("User cannot be null.")
        if not entity.username or not entity.username.strip():
            raise ValidationError("Username cannot be empty.")
        if (entity.roles or 0) < 0:
            raise ValidationError("Role bitmask cannot be negative.")
        if creating and not entity.password_hash:
            raise ValidationError("A user must have a password.")

    def create(self, entity: User, password: Optional[str] = None) -> User:
        """保存新用户；传入明文 ``password`` 时先做 argon2 哈希。"""

        if password is not None:
            entity.password_hash = hash_secret(password)
        return super().create(entity)

    def get_by_username(self, username: str) -> Optional[User]:
        return self._scalar(select(User).where(User.username == username))

    def does_user_exist(self, username: str) -> bool:
        return bool(self._scalar(select(func.count()).select_from(User).where(User.username == username)))

    def validate_login(self, username: str, password: str) -> bool:
        user = self.get_by_username(username)
        if user is None:
            return False
        return verify_secret(user.password_hash, password)

    def update_password(self, user_id: int, password: str) -> bool:
        result = self._execute(
            update(User).where(User.id == user_id).values(password_hash=hash_secret(password))
        )
        return result.rowcount == 1

    def get_all_reviewers(self) -> list[User]:
        bit = Role.REVIEWER.bit
        return self._scalars(select(User).where(User.roles.op("&")(bit) == bit).order_by(User.id))

    def get_reviewers_not_rated_by_user(self, user_id: int) -> list[User]:
        """尚未出现在 ``user_id`` 信任列表中的审阅者。"""

        bit = Role.REVIEWER.bit
        already = select(Review.reviewer_id).where(Review.user_id == user_id)
        return self._scalars(
            select(User)
            .where(User.roles.op("&")(bit) == bit)
            .where(User.id != user_id)
            .where(User.id.not_in(already))
            .order_by(User.id)
        )

    def count_admins(self) -> int:
        bit = Role.ADMIN.bit
        return self._scalar(
            select(func.count()).select_from(User).where(User.roles.op("&")(bit) == bit)
        ) or 0


class Invites(Repository[Invite]):
    model = Invite

    def validate(self, entity: Invite, creating: bool) -> None:
        if entity is None:
            raise ValidationError("Invite cannot be null.")
        if (entity.roles or 0) < 0:
            raise ValidationError("Role bitmask cannot be negative.")

    def create(self, entity: Invite) -> Invite:
        settings = get_settings()
        if not entity.code:
            entity.code = generate_code(settings.invite_code_length)
        if entity.created_at is None:
            entity.created_at = current_time_seconds()
        return super().create(entity)

    def find_invite(self, code: str, now: Optional[int] = None) -> Optional[Invite]:
        """查找并消费邀请码。

        过期或不存在返回 ``None``。成功时删除邀请行；删除影响行数为 0
        说明已被并发兑换，同样返回 ``None``。
        """

        ttl = get_settings().invite_ttl_seconds
        now = current_time_seconds() if now is None else now
        invite = self._scalar(select(Invite).where(Invite.code == code))
        if invite is None:
            return None
        if now - invite.created_at >= ttl:
            logger.info("Invite %s expired", invite.id)
            return None

        result = self._execute(delete(Invite).where(Invite.id == invite.id))
        if result.rowcount != 1:
            return None
        logger.info("Invite %s redeemed for roles %s", invite.id, invite.roles)
        return invite

    def count_invites_by_user(self, user_id: int) -> int:
        return self._scalar(
            select(func.count()).select_from(Invite).where(Invite.user_id == user_id)
        ) or 0


class OneTimePasswords(Repository[OneTimePassword]):
    model = OneTimePassword

    def validate(self, entity: OneTimePassword, creating: bool) -> None:
        if entity is None:
            raise ValidationError("One-time password cannot be null.")
        if not entity.otp_value:
            raise ValidationError("One-time password value cannot be empty.")

    def create(self, entity: OneTimePassword, plain: Optional[str] = None) -> OneTimePassword:
        """保存一次性密码；``plain`` 为明文，入库前哈希。"""

        if plain is not None:
            entity.otp_value = hash_secret(plain)
        return super().create(entity)

    def check(self, target_id: int, provided: str) -> bool:
        """校验并消费一次性密码。

        只有条件更新 ``WHERE is_used = false`` 实际改动一行时才算成功，
        同一个值被并发提交两次最多成功一次。
        """

        candidates = self._scalars(
            select(OneTimePassword)
            .where(OneTimePassword.target_id == target_id)
            .where(OneTimePassword.is_used.is_(False))
            .order_by(OneTimePassword.id.desc())
        )
        for otp in candidates:
            if not verify_secret(otp.otp_value, provided):
                continue
            result = self._execute(
                update(OneTimePassword)
                .where(OneTimePassword.id == otp.id)
                .where(OneTimePassword.is_used.is_(False))
                .values(is_used=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                self.db.expire(otp)
                logger.info("One-time password %s consumed for user %s", otp.id, target_id)
                return True
            return False
        return False
