"""
Integration tests for the source manager facade against the fake provider.
"""

import zipfile
from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from sourcemanager.exceptions import (
    NoChangesError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from sourcemanager.service import COMMIT_MESSAGE, _split_filepath
from sourcemanager.testing import create_bare_repo, requires_git, run_git
from sourcemanager.types import Folder, Membership, MembershipRole

REPO_PATH = "kathra-projects/DT/testProject"

segment_strategy = st.text(
    alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd"), whitelist_characters="-_"),
    min_size=1,
    max_size=12,
)
outside_path_strategy = st.lists(segment_strategy, min_size=1, max_size=4).filter(
    lambda segments: segments[0] != "kathra-projects"
).map("/".join)


@given(path=outside_path_strategy)
@settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_paths_outside_root_group_are_rejected_before_any_call(
    path: str, source_manager, fake_gitlab, tmp_path
) -> None:
    """
    Property: Namespace guard

    Every repository operation on a path outside the root group fails
    with UnauthorizedError without contacting the provider.
    """
    operations = [
        lambda: source_manager.create_source_repository(path),
        lambda: source_manager.delete_source_repository(path),
        lambda: source_manager.create_branch(path, "feature"),
        lambda: source_manager.get_branches(path),
        lambda: source_manager.get_commits(path, "master"),
        lambda: source_manager.get_file(path, "master", "README.md"),
        lambda: source_manager.create_commit(path, "dev", tmp_path / "file.txt"),
        lambda: source_manager.create_deploy_key("key", "ssh-rsa AAAA", path),
    ]

    for operation in operations:
        with pytest.raises(UnauthorizedError):
            operation()

    assert fake_gitlab.calls == []


class TestFolders:
    def test_create_folder(self, fake_gitlab, source_manager) -> None:
        folder = source_manager.create_folder("kathra-projects/DT/backend/")

        assert folder == Folder(path="kathra-projects/DT/backend")
        assert fake_gitlab.group("kathra-projects/DT/backend") is not None

    def test_create_folder_runs_as_caller(self, fake_gitlab, source_manager) -> None:
        source_manager.create_folder("kathra-projects/DT")

        posts = [c for c in fake_gitlab.calls if c.method == "POST" and c.path == "/groups"]
        assert [c.username for c in posts] == ["jdoe"]

    def test_get_folders(self, source_manager) -> None:
        source_manager.create_folder("kathra-projects/DT")

        paths = [folder.path for folder in source_manager.get_folders()]

        assert paths == ["kathra-projects", "kathra-projects/DT"]

    def test_repositories_in_folder(self, fake_gitlab, source_manager) -> None:
        fake_gitlab.seed_project("kathra-projects/DT/a")
        fake_gitlab.seed_project("kathra-projects/DT/b")
        fake_gitlab.seed_project("kathra-projects/other/c")

        repos = source_manager.get_source_repositories_in_folder("kathra-projects/DT")

        assert sorted(repo.path for repo in repos) == ["kathra-projects/DT/a", "kathra-projects/DT/b"]
        assert all(repo.provider == "gitlab" for repo in repos)

    def test_repositories_in_missing_folder(self, source_manager) -> None:
        with pytest.raises(NotFoundError):
            source_manager.get_source_repositories_in_folder("kathra-projects/nowhere")


class TestRepositories:
    def test_create_source_repository(self, fake_gitlab, source_manager) -> None:
        fake_gitlab.add_deploy_key("jenkins")

        repo = source_manager.create_source_repository(REPO_PATH, deploy_keys=["jenkins"])

        assert repo.path == REPO_PATH
        assert fake_gitlab.branches(REPO_PATH) == ["master", "dev"]
        assert fake_gitlab.enabled_deploy_keys(REPO_PATH) == ["jenkins"]
        creates = [c for c in fake_gitlab.calls if c.method == "POST" and c.path == "/projects"]
        assert [c.username for c in creates] == ["jdoe"]

    def test_create_twice_creates_once(self, fake_gitlab, source_manager) -> None:
        first = source_manager.create_source_repository(REPO_PATH)
        second = source_manager.create_source_repository(REPO_PATH)

        assert first.provider_id == second.provider_id
        assert fake_gitlab.project(REPO_PATH)["id"] == int(first.provider_id)
        assert fake_gitlab.count("POST", r"^/projects$") == 1

    def test_delete_source_repository(self, fake_gitlab, source_manager) -> None:
        fake_gitlab.seed_project(REPO_PATH)

        source_manager.delete_source_repository(REPO_PATH)

        assert fake_gitlab.project(REPO_PATH) is None
        with pytest.raises(NotFoundError):
            source_manager.delete_source_repository(REPO_PATH)

    def test_create_branch_defaults_to_master(self, fake_gitlab, source_manager) -> None:
        fake_gitlab.seed_project(REPO_PATH)

        assert source_manager.create_branch(REPO_PATH, "feature") == "feature"
        assert fake_gitlab.branches(REPO_PATH) == ["master", "feature"]

    def test_get_branches_lists_branches_then_tags(self, fake_gitlab, source_manager) -> None:
        fake_gitlab.seed_project(REPO_PATH, branches=["master", "dev"], tags=["1.0.0"])

        assert source_manager.get_branches(REPO_PATH) == ["master", "dev", "1.0.0"]

    def test_get_commits(self, fake_gitlab, source_manager) -> None:
        fake_gitlab.seed_project(REPO_PATH)

        commits = source_manager.get_commits(REPO_PATH, "master")

        assert [c.title for c in commits] == ["Initial commit"]
        assert commits[0].short_id == commits[0].id[:8]

    def test_create_deploy_key(self, fake_gitlab, source_manager) -> None:
        fake_gitlab.seed_project(REPO_PATH)

        key = source_manager.create_deploy_key("ci", "ssh-ed25519 AAAAC3", REPO_PATH)

        assert key.title == "ci"
        assert fake_gitlab.enabled_deploy_keys(REPO_PATH) == ["ci"]


class TestMemberships:
    def test_add_get_delete(self, fake_gitlab, source_manager) -> None:
        fake_gitlab.seed_project(REPO_PATH)
        fake_gitlab.add_user("alice")
        membership = Membership("alice", MembershipRole.CONTRIBUTOR, REPO_PATH)

        added = source_manager.add_memberships([membership])
        listed = source_manager.get_memberships(REPO_PATH)
        removed = source_manager.delete_memberships([membership])

        assert added.applied == [membership]
        assert [(m.member_name, m.role) for m in listed] == [("alice", MembershipRole.CONTRIBUTOR)]
        assert removed.applied == [membership]
        assert fake_gitlab.project_members(REPO_PATH) == {}


@requires_git
class TestCommits:
    @pytest.fixture
    def remote(self, fake_gitlab, tmp_path) -> Path:
        bare = create_bare_repo(tmp_path / "remotes" / "testProject.git")
        fake_gitlab.seed_project(REPO_PATH, http_url=str(bare))
        return bare

    @pytest.fixture
    def swagger(self, tmp_path) -> Path:
        source = tmp_path / "upload" / "swagger.yml"
        source.parent.mkdir()
        source.write_text("openapi: 3.0.0\n")
        return source

    def test_commit_with_tag(self, source_manager, remote, swagger) -> None:
        commit = source_manager.create_commit(REPO_PATH, "dev", swagger, tag="testTag")

        dev_log = run_git("log", "--format=%an|%s", "dev", cwd=remote).splitlines()
        assert dev_log[0] == f"jdoe|{COMMIT_MESSAGE}"
        assert sum(1 for line in dev_log if line.startswith("jdoe|")) == 1
        assert run_git("tag", "--list", cwd=remote).split() == ["testTag"]
        assert run_git("rev-parse", "refs/tags/testTag", cwd=remote).strip() == commit.id
        assert run_git("show", "dev:swagger.yml", cwd=remote) == "openapi: 3.0.0\n"

    def test_unchanged_content_is_not_pushed(self, source_manager, remote, swagger) -> None:
        source_manager.create_commit(REPO_PATH, "dev", swagger)
        head = run_git("rev-parse", "refs/heads/dev", cwd=remote)

        with pytest.raises(NoChangesError):
            source_manager.create_commit(REPO_PATH, "dev", swagger, tag="later")

        assert run_git("rev-parse", "refs/heads/dev", cwd=remote) == head
        assert run_git("tag", "--list", cwd=remote).strip() == ""

    def test_commit_into_folder(self, source_manager, remote, swagger) -> None:
        source_manager.create_commit(REPO_PATH, "master", swagger, filepath="docs/api.yml")

        assert run_git("show", "master:docs/api.yml", cwd=remote) == "openapi: 3.0.0\n"

    def test_commit_replacing_content(self, source_manager, remote, swagger) -> None:
        source_manager.create_commit(REPO_PATH, "master", swagger, replace_content=True)

        files = run_git("ls-tree", "--name-only", "master", cwd=remote).split()
        assert files == ["swagger.yml"]

    def test_commit_archive(self, source_manager, remote, tmp_path) -> None:
        archive = tmp_path / "generated.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("src/app.py", "app = None\n")

        source_manager.create_commit(REPO_PATH, "dev", archive, uncompress=True)

        assert run_git("show", "dev:src/app.py", cwd=remote) == "app = None\n"

    def test_get_file_from_tag(self, source_manager, remote, swagger) -> None:
        source_manager.create_commit(REPO_PATH, "dev", swagger, tag="1.0.0")

        assert source_manager.get_file(REPO_PATH, "1.0.0", "swagger.yml") == b"openapi: 3.0.0\n"

    def test_get_missing_file(self, source_manager, remote) -> None:
        with pytest.raises(NotFoundError):
            source_manager.get_file(REPO_PATH, "master", "missing.yml")

    def test_working_folders_are_removed(self, source_manager, remote, swagger, config) -> None:
        source_manager.create_commit(REPO_PATH, "dev", swagger)

        assert list(Path(config.workdir_base).iterdir()) == []


@pytest.mark.parametrize(
    ("path", "branch", "filepath"),
    [
        ("", "master", "README.md"),
        (REPO_PATH, "", "README.md"),
        (REPO_PATH, "master", ""),
    ],
)
def test_get_file_requires_every_argument(source_manager, fake_gitlab, path, branch, filepath) -> None:
    with pytest.raises(ValidationError) as exc_info:
        source_manager.get_file(path, branch, filepath)

    assert exc_info.value.code == "INVALID_ARGUMENT"
    assert fake_gitlab.calls == []


@pytest.mark.parametrize(
    ("filepath", "expected"),
    [
        (None, ("", None)),
        ("", ("", None)),
        (".", ("", None)),
        ("swagger.yml", ("", "swagger.yml")),
        ("docs/", ("docs", None)),
        ("docs/api/swagger.yml", ("docs/api", "swagger.yml")),
    ],
)
def test_split_filepath(filepath, expected) -> None:
    assert _split_filepath(filepath) == expected
