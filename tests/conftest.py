"""Pytest configuration for the church rota tests."""


def pytest_configure(config):
    """Register markers for database-backed and slow tests."""
    config.addinivalue_line(
        "markers", "integration: tests that run against a SQLite database (deselect with '-m \"not integration\"')"
    )
    config.addinivalue_line(
        "markers", "slow: thread races and timeouts (deselect with '-m \"not slow\"')"
    )
