"""角色位掩码代数。

每个角色占一个二进制位，用户的 ``roles`` 字段是所持角色位的按位或。
位值需保持稳定以兼容已有数据：USER=1, ADMIN=2, INSTRUCTOR=4,
STUDENT=8, REVIEWER=16, STAFF=32。
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Iterator, Union


class Role(int, enum.Enum):
    """封闭的角色集合，值即角色位。"""

    USER = 1
    ADMIN = 1 << 1
    INSTRUCTOR = 1 << 2
    STUDENT = 1 << 3
    REVIEWER = 1 << 4
    STAFF = 1 << 5

    @property
    def bit(self) -> int:
        return int(self.value)


# 按位值升序，decode 的输出顺序依赖于此
ALL_ROLES: tuple[Role, ...] = tuple(sorted(Role, key=lambda r: r.bit))

ALL_BITS = 0
for _role in ALL_ROLES:
    ALL_BITS |= _role.bit

DISPLAY_NAMES: dict[Role, str] = {
    Role.USER: "User",
    Role.ADMIN: "Admin",
    Role.INSTRUCTOR: "Instructor",
    Role.STUDENT: "Student",
    Role.REVIEWER: "Reviewer",
    Role.STAFF: "Staff",
}


RolesLike = Union[int, "RoleSet", Role, Iterable[Role], None]


def _to_bits(value: RolesLike) -> int:
    if value is None:
        return 0
    if isinstance(value, RoleSet):
        return value.bits
    if isinstance(value, Role):
        return value.bit
    if isinstance(value, int):
        return value if value > 0 else 0
    return encode(value)


def decode(bitmask: int | None) -> list[Role]:
    """位掩码 → 角色列表（按位值升序）。0、负数或 None 视为无角色。"""

    if bitmask is None or bitmask <= 0:
        return []
    return [role for role in ALL_ROLES if bitmask & role.bit == role.bit]


def encode(roles: Iterable[Role] | None) -> int:
    """角色列表 → 位掩码。重复角色不会重复计数。"""

    bits = 0
    for role in roles or ():
        bits |= Role(role).bit
    return bits


def has(bitmask_or_roles: RolesLike, role: Role) -> bool:
    bits = _to_bits(bitmask_or_roles)
    return bits & role.bit == role.bit


def has_all(roles: RolesLike, required: Iterable[Role]) -> bool:
    """required 为空时恒为 True。"""

    return all(has(roles, r) for r in required)


def has_any(roles: RolesLike, required: Iterable[Role]) -> bool:
    """required 为空时恒为 False（与 has_all 不对称）。"""

    return any(has(roles, r) for r in required)


def add(bitmask: int, role: Role) -> int:
    return _to_bits(bitmask) | role.bit


def remove(bitmask: int, role: Role) -> int:
    return _to_bits(bitmask) & ~role.bit


def display_name(role: Role) -> str:
    return DISPLAY_NAMES[role]


@dataclass(frozen=True)
class RoleSet:
    """包装整数位掩码的不可变值对象，调用方无需直接做位运算。"""

    bits: int = 0

    def __post_init__(self) -> None:
        # 负数与未定义的位统一丢弃
        object.__setattr__(self, "bits", (self.bits if self.bits > 0 else 0) & ALL_BITS)

    @classmethod
    def of(cls, *roles: Role) -> "RoleSet":
        return cls(encode(roles))

    @classmethod
    def coerce(cls, value: RolesLike) -> "RoleSet":
        if isinstance(value, RoleSet):
            return value
        return cls(_to_bits(value))

    @property
    def roles(self) -> list[Role]:
        return decode(self.bits)

    def has(self, role: Role) -> bool:
        return has(self.bits, role)

    def has_all(self, required: Iterable[Role]) -> bool:
        return has_all(self.bits, required)

    def has_any(self, required: Iterable[Role]) -> bool:
        return has_any(self.bits, required)

    def with_role(self, role: Role) -> "RoleSet":
        return RoleSet(add(self.bits, role))

    def without_role(self, role: Role) -> "RoleSet":
        return RoleSet(remove(self.bits, role))

    def display_names(self) -> list[str]:
        return [display_name(r) for r in self.roles]

    def __contains__(self, role: object) -> bool:
        return isinstance(role, Role) and self.has(role)

    def __iter__(self) -> Iterator[Role]:
        return iter(self.roles)

    def __len__(self) -> int:
        return len(self.roles)

    def __int__(self) -> int:
        return self.bits

    def __repr__(self) -> str:
        names = "|".join(r.name for r in self.roles) or "NONE"
        return f"<RoleSet({names})>"
