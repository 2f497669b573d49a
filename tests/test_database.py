import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from mess_manager.core.exceptions import NotFoundException
from mess_manager.database import run_with_retry


def connection_lost():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))


@pytest.fixture
def rollbacks(db_session, monkeypatch):
    """Record every rollback issued on the test session"""
    calls = []
    original = db_session.rollback

    def _rollback():
        calls.append(True)
        original()

    monkeypatch.setattr(db_session, "rollback", _rollback)
    return calls


class TestRunWithRetry:
    """Tests for run_with_retry"""

    def test_rolls_back_before_retrying(self, db_session, rollbacks):
        """A transient failure is rolled back and the next attempt succeeds"""
        attempts = []

        def query():
            attempts.append(True)
            if len(attempts) == 1:
                raise connection_lost()
            return db_session.execute(text("SELECT 42")).scalar()

        assert run_with_retry(db_session, query, backoff_base=0) == 42
        assert len(attempts) == 2
        assert len(rollbacks) == 1

    def test_gives_up_after_last_attempt(self, db_session, rollbacks):
        attempts = []

        def query():
            attempts.append(True)
            raise connection_lost()

        with pytest.raises(OperationalError):
            run_with_retry(db_session, query, attempts=3, backoff_base=0)

        assert len(attempts) == 3
        assert len(rollbacks) == 3

    def test_domain_errors_are_not_retried(self, db_session, rollbacks):
        attempts = []

        def query():
            attempts.append(True)
            raise NotFoundException("Member 7 not found in this mess")

        with pytest.raises(NotFoundException):
            run_with_retry(db_session, query, backoff_base=0)

        assert len(attempts) == 1
        assert rollbacks == []
