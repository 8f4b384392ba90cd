pytest_plugins = ["sourcemanager.testing.conftest"]
