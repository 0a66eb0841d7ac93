"""
Tests for the privileged/restricted database client selector.
"""
import logging
import threading
from unittest.mock import MagicMock

from core.database import DatabaseClientSelector, check_db_connection


def _failing_factory():
    session = MagicMock()
    session.execute.side_effect = RuntimeError("permission denied for table person")
    return session


def test_privileged_client_used_while_check_succeeds(session_factory):
    selector = DatabaseClientSelector(privileged=session_factory, restricted=MagicMock())
    assert selector.select() is session_factory
    assert selector.using_service_role is True


def test_first_failure_downgrades_permanently(session_factory):
    privileged = MagicMock(side_effect=_failing_factory)
    selector = DatabaseClientSelector(privileged=privileged, restricted=session_factory)

    assert selector.select() is session_factory
    assert selector.using_service_role is False

    # Later requests never check the privileged client again
    assert selector.select() is session_factory
    assert privileged.call_count == 1


def test_downgrade_warns_once(caplog):
    selector = DatabaseClientSelector(privileged=MagicMock(), restricted=MagicMock())
    with caplog.at_level(logging.WARNING, logger="core.database"):
        selector.downgrade("first")
        selector.downgrade("second")
    warnings = [r for r in caplog.records if "falling back to restricted client" in r.getMessage()]
    assert len(warnings) == 1


def test_concurrent_downgrades_are_consistent(session_factory):
    selector = DatabaseClientSelector(privileged=MagicMock(side_effect=_failing_factory), restricted=session_factory)
    results = []

    def worker():
        results.append(selector.select())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert all(r is session_factory for r in results)
    assert selector.using_service_role is False


def test_check_db_connection(session_factory):
    assert check_db_connection(session_factory) is True
    assert check_db_connection(_failing_factory) is False
