import pytest

DATABASE_FIXTURES = {"event_db", "event_db_factory"}


def pytest_collection_modifyitems(items):
    """Mark unit tests, and tests that build a PAMGuard database."""
    for item in items:
        if "/unit/" not in str(item.fspath):
            continue
        item.add_marker(pytest.mark.unit)
        if DATABASE_FIXTURES & set(getattr(item, "fixturenames", ())):
            item.add_marker(pytest.mark.database)
