"""
Pytest plugin for source manager testing fixtures.

Re-exports the fixtures from fixtures.py so they are discovered when a
conftest.py declares:

    pytest_plugins = ["sourcemanager.testing.conftest"]
"""

from sourcemanager.testing.fixtures import (
    admin_client,
    bare_repo,
    config,
    fake_gitlab,
    session,
    source_manager,
)

__all__ = [
    "fake_gitlab",
    "config",
    "admin_client",
    "session",
    "source_manager",
    "bare_repo",
]
