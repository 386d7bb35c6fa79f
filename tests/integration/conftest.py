import pytest


def pytest_collection_modifyitems(items):
    """Mark everything under integration/ as an end-to-end test."""
    for item in items:
        if "/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.database)
