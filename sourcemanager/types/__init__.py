"""Source manager type definitions.

This module exports all data model types used by the package.
"""

from sourcemanager.types.access import AccessLevel, MemberType, Membership, MembershipRole
from sourcemanager.types.folders import Folder
from sourcemanager.types.provider import (
    Branch,
    DeployKey,
    Group,
    ImpersonationToken,
    Project,
    ProviderMember,
    ProviderUser,
    Tag,
)
from sourcemanager.types.repos import PROVIDER_NAME, Commit, SourceRepository

__all__ = [
    # Platform types
    "Folder",
    "SourceRepository",
    "Commit",
    "Membership",
    "MembershipRole",
    "MemberType",
    "AccessLevel",
    "PROVIDER_NAME",
    # Provider types
    "Group",
    "Project",
    "Branch",
    "Tag",
    "ProviderUser",
    "ProviderMember",
    "ImpersonationToken",
    "DeployKey",
]
