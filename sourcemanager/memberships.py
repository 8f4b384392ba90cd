"""
Membership synchronization.

Adds, removes and lists human access grants on a path that names either
a project or a group. The project is tried first; a "not found" answer
falls back to the group with the same path.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from sourcemanager.client import GitLabClient
from sourcemanager.exceptions import ConflictError, NotFoundError
from sourcemanager.logging import get_logger
from sourcemanager.paths import sanitize_path
from sourcemanager.types.access import AccessLevel, MemberType, Membership, MembershipRole
from sourcemanager.types.provider import ProviderMember, ProviderUser

logger = get_logger("memberships")


class BatchPolicy(str, Enum):
    """What a batch does after an entry hits a missing member or a duplicate grant."""

    FAIL_FAST = "FAIL_FAST"  # stop, remaining entries are skipped
    CONTINUE = "CONTINUE"  # skip the entry, process the rest


@dataclass
class BatchResult:
    """Outcome of a membership batch."""

    applied: list[Membership] = field(default_factory=list)
    skipped: list[Membership] = field(default_factory=list)

    @property
    def stopped(self) -> bool:
        return bool(self.skipped)


def role_to_access_level(role: MembershipRole, is_group: bool) -> AccessLevel:
    """Map a platform role onto the provider access level for a project or group."""
    if role == MembershipRole.GUEST:
        return AccessLevel.REPORTER
    if role == MembershipRole.CONTRIBUTOR:
        return AccessLevel.DEVELOPER
    if role == MembershipRole.MANAGER:
        return AccessLevel.OWNER if is_group else AccessLevel.MAINTAINER
    return AccessLevel.GUEST


def access_level_to_role(access_level: int) -> MembershipRole:
    """Map a provider access level back onto a platform role."""
    if access_level <= AccessLevel.REPORTER:
        return MembershipRole.GUEST
    if access_level == AccessLevel.DEVELOPER:
        return MembershipRole.CONTRIBUTOR
    return MembershipRole.MANAGER


class MembershipSynchronizer:
    """Applies platform memberships to provider projects and groups.

    Uses the admin client: grants are managed on behalf of the platform.
    """

    def __init__(
        self,
        admin: GitLabClient,
        policy: BatchPolicy = BatchPolicy.FAIL_FAST,
    ) -> None:
        self.admin = admin
        self.policy = policy

    def add(self, memberships: list[Membership], policy: BatchPolicy | None = None) -> BatchResult:
        """
        Grant every membership, in order.

        A member without provider account, or a grant that already exists,
        stops the batch (FAIL_FAST) or skips the entry (CONTINUE).
        """
        return self._apply(memberships, self._add_one, policy or self.policy)

    def remove(self, memberships: list[Membership], policy: BatchPolicy | None = None) -> BatchResult:
        """Revoke every membership, in order, with the same batch policy as ``add``."""
        return self._apply(memberships, self._remove_one, policy or self.policy)

    def _apply(
        self,
        memberships: list[Membership],
        operation: Callable[[Membership, ProviderUser], None],
        policy: BatchPolicy,
    ) -> BatchResult:
        result = BatchResult()
        for index, membership in enumerate(memberships):
            try:
                user = self.admin.users.get_by_username(membership.member_name)
            except NotFoundError:
                logger.error("Unable to find member %s", membership.member_name)
                if self._stop(result, memberships, index, policy):
                    break
                continue

            try:
                operation(membership, user)
            except ConflictError:
                logger.error(
                    "Membership of %s on %s already exists", membership.member_name, membership.path
                )
                if self._stop(result, memberships, index, policy):
                    break
                continue

            result.applied.append(membership)
        return result

    def _stop(self, result: BatchResult, memberships: list[Membership], index: int, policy: BatchPolicy) -> bool:
        if policy == BatchPolicy.FAIL_FAST:
            result.skipped.extend(memberships[index:])
            return True
        result.skipped.append(memberships[index])
        return False

    def _add_one(self, membership: Membership, user: ProviderUser) -> None:
        path = sanitize_path(membership.path or "")
        try:
            project = self.admin.projects.get(path)
        except NotFoundError:
            group = self.admin.groups.get(path)
            self.admin.groups.add_member(
                group, user.id, role_to_access_level(membership.role, is_group=True)
            )
            return
        self.admin.projects.add_member(
            project, user.id, role_to_access_level(membership.role, is_group=False)
        )

    def _remove_one(self, membership: Membership, user: ProviderUser) -> None:
        path = sanitize_path(membership.path or "")
        try:
            project = self.admin.projects.get(path)
        except NotFoundError:
            group = self.admin.groups.get(path)
            self.admin.groups.remove_member(group, user.id)
            return
        self.admin.projects.remove_member(project, user.id)

    def list(self, path: str, member_type: MemberType | str | None = None) -> list[Membership]:
        """
        List direct members of the project or group at ``path``.

        Raises:
            NotFoundError: If neither a project nor a group exists at ``path``
        """
        path = sanitize_path(path)
        if member_type is not None and MemberType(member_type) != MemberType.USER:
            return []

        members: list[ProviderMember]
        try:
            project = self.admin.projects.get(path)
            members = self.admin.projects.members(project)
        except NotFoundError:
            try:
                group = self.admin.groups.get(path)
            except NotFoundError as e:
                raise NotFoundError(
                    "NOT_FOUND", f"Unable to find project or group {path}"
                ) from e
            members = self.admin.groups.members(group)

        return [
            Membership(
                member_name=member.username,
                role=access_level_to_role(member.access_level),
                path=path,
                member_type=MemberType.USER,
            )
            for member in members
        ]
