from itertools import combinations

import pytest

from helpdesk.core import roles
from helpdesk.core.roles import ALL_ROLES, Role, RoleSet


def all_subsets():
    for size in range(len(ALL_ROLES) + 1):
        yield from combinations(ALL_ROLES, size)


def test_bit_values_are_stable():
    assert [r.bit for r in ALL_ROLES] == [1, 2, 4, 8, 16, 32]
    assert Role.REVIEWER.bit == 16


def test_decode_encode_roundtrip_normalizes_order():
    for subset in all_subsets():
        shuffled = list(reversed(subset))
        assert roles.decode(roles.encode(shuffled)) == list(subset)


@pytest.mark.parametrize("value", [0, -1, -32, None])
def test_decode_empty_inputs(value):
    assert roles.decode(value) == []


def test_encode_empty_inputs():
    assert roles.encode([]) == 0
    assert roles.encode(None) == 0


def test_encode_ignores_duplicates():
    assert roles.encode([Role.ADMIN, Role.ADMIN, Role.USER]) == 3


def test_has_all_and_has_any_empty_asymmetry():
    for subset in all_subsets():
        bits = roles.encode(subset)
        assert roles.has_all(bits, []) is True
        assert roles.has_any(bits, []) is False


def test_has_all_and_has_any():
    bits = roles.encode([Role.STUDENT, Role.REVIEWER])
    assert roles.has_all(bits, [Role.STUDENT, Role.REVIEWER])
    assert not roles.has_all(bits, [Role.STUDENT, Role.ADMIN])
    assert roles.has_any(bits, [Role.ADMIN, Role.REVIEWER])
    assert not roles.has_any(bits, [Role.ADMIN, Role.STAFF])


def test_add_and_remove_are_idempotent():
    for subset in all_subsets():
        bits = roles.encode(subset)
        for role in ALL_ROLES:
            once = roles.add(bits, role)
            assert roles.add(once, role) == once
            removed = roles.remove(bits, role)
            assert roles.remove(removed, role) == removed
            assert not roles.has(removed, role)


def test_add_reviewer_to_empty_mask():
    assert roles.add(0, Role.REVIEWER) == 16


def test_display_names():
    assert [roles.display_name(r) for r in ALL_ROLES] == [
        "User",
        "Admin",
        "Instructor",
        "Student",
        "Reviewer",
        "Staff",
    ]


def test_role_set_value_type():
    rs = RoleSet.of(Role.STUDENT, Role.USER)
    assert int(rs) == 9
    assert rs.roles == [Role.USER, Role.STUDENT]
    assert Role.STUDENT in rs
    assert Role.ADMIN not in rs
    assert len(rs) == 2
    assert list(rs) == [Role.USER, Role.STUDENT]

    promoted = rs.with_role(Role.REVIEWER)
    assert promoted.has(Role.REVIEWER)
    assert not rs.has(Role.REVIEWER)
    assert promoted.without_role(Role.REVIEWER) == rs
    assert promoted.display_names() == ["User", "Student", "Reviewer"]


def test_role_set_drops_negative_and_unknown_bits():
    assert RoleSet(-5).bits == 0
    assert RoleSet(64 | 2).bits == 2


def test_role_set_coerce():
    assert RoleSet.coerce([Role.ADMIN]).bits == 2
    assert RoleSet.coerce(Role.STAFF).bits == 32
    assert RoleSet.coerce(None).bits == 0
    existing = RoleSet(4)
    assert RoleSet.coerce(existing) is existing
