"""显式传递的会话上下文，取代全局当前用户状态。"""

from dataclasses import dataclass
from typing import Optional

from helpdesk.core.roles import Role, RoleSet


@dataclass(frozen=True)
class SessionContext:
    """一次请求中的执行者身份。

    ``roles`` 是登录时的快照；涉及授权的写操作仍以数据库中的用户为准。
    """

    user_id: int
    username: str
    roles: RoleSet
    active_role: Optional[Role] = None

    def has_role(self, role: Role) -> bool:
        return self.roles.has(role)

    @classmethod
    def for_user(cls, user, active_role: Optional[Role] = None) -> "SessionContext":
        return cls(
            user_id=user.id,
            username=user.username,
            roles=user.role_set,
            active_role=active_role,
        )
