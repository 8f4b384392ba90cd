"""Membership data models.

Platform roles are mapped onto provider access levels by
``sourcemanager.memberships``.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum


class MembershipRole(str, Enum):
    """Platform-level role vocabulary."""

    GUEST = "GUEST"
    CONTRIBUTOR = "CONTRIBUTOR"
    MANAGER = "MANAGER"


class MemberType(str, Enum):
    """Kinds of members; only human users are supported."""

    USER = "USER"


class AccessLevel(IntEnum):
    """Provider access levels."""

    GUEST = 10
    REPORTER = 20
    DEVELOPER = 30
    MAINTAINER = 40  # "Master" on older provider releases
    OWNER = 50


@dataclass(frozen=True)
class Membership:
    """An access grant of one member on a repository or folder path."""

    member_name: str
    role: MembershipRole
    path: str | None = None
    member_type: MemberType = MemberType.USER
