"""Pytest configuration for the soft delete toolkit."""


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line(
        "markers", "cascade: mark test as exercising cascading soft deletes"
    )
