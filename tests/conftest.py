import pytest

from helpers import FakeClock, make_questions
from timed_cbt.services.persistence import FileBackupStore, InMemoryStore
from timed_cbt.services.session_engine import ExamSession
from timed_cbt.services.submission import SubmissionPipeline


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def backup(tmp_path):
    return FileBackupStore(str(tmp_path / "backup"))


@pytest.fixture
def pipeline(store, backup, clock):
    return SubmissionPipeline(store, backup, clock=clock)


@pytest.fixture
def make_session(pipeline, clock):
    def _make(n=10, duration=600, **kwargs):
        kwargs.setdefault("pipeline", pipeline)
        return ExamSession(make_questions(n), duration, clock=clock, **kwargs)
    return _make


@pytest.fixture
def started(make_session):
    session = make_session()
    session.start()
    return session
