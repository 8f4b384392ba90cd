"""Source manager testing utilities.

Provides an in-memory provider and fixtures for testing code that uses
the source manager.
"""

from sourcemanager.testing.fake import FakeCall, FakeGitLab
from sourcemanager.testing.fixtures import create_bare_repo, requires_git, run_git

__all__ = [
    "FakeGitLab",
    "FakeCall",
    "create_bare_repo",
    "requires_git",
    "run_git",
]
