"""
Pytest configuration and fixtures

Every test gets its own file-backed SQLite database, built from the
models' metadata. Both database credentials point at it, and the OpenAI
client on app.state is replaced by a scripted fake, so nothing leaves
the process.
"""
import json
import os
import sys
from datetime import date

import pytest

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")

from fastapi.testclient import TestClient

from core.database import Base, DatabaseClientSelector, build_engine, build_session_factory
from core.exceptions import LLMUnavailableError
from main import app
from models import Group, Person, PersonGroup, PracticeSession, Tag


class FakeLLM:
    """
    Scripted stand-in for LLMClient.

    Queued responses are returned in order: dicts/lists are JSON-encoded,
    strings are returned verbatim, exceptions are raised. When the queue
    is empty ``default`` is used. Every request is kept in ``requests``.
    """

    available = True

    def __init__(self, *responses, default=None):
        self.responses = list(responses)
        self.default = default
        self.requests = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def complete(self, request):
        self.requests.append(request)
        if self.responses:
            item = self.responses.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise LLMUnavailableError("No scripted response left")
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return item
        return json.dumps(item)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'coaching.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def selector(session_factory):
    return DatabaseClientSelector(privileged=session_factory, restricted=session_factory)


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def client(selector, fake_llm):
    previous = (app.state.client_selector, app.state.llm_client)
    app.state.client_selector = selector
    app.state.llm_client = fake_llm
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.state.client_selector, app.state.llm_client = previous


ROSTER = [
    {"id": "p1", "display_name": "Jayden Smith", "first_name": "Jayden", "last_name": "Smith", "aliases": ["Jay"], "advancement_level": 4, "responsibility_tier": 2, "collective_growth_phase": 3},
    {"id": "p2", "display_name": "Marcus Lee", "first_name": "Marcus", "last_name": "Lee", "aliases": [], "advancement_level": 5, "responsibility_tier": 3, "collective_growth_phase": 3},
    {"id": "p3", "display_name": "Tyrese Brown", "first_name": "Tyrese", "last_name": "Brown", "aliases": ["Ty"], "advancement_level": 3, "responsibility_tier": 2, "collective_growth_phase": 3},
    {"id": "p4", "display_name": "Andre Davis", "first_name": "Andre", "last_name": "Davis", "aliases": [], "advancement_level": 2, "responsibility_tier": 1, "collective_growth_phase": 2},
    {"id": "p5", "display_name": "Caleb Jones", "first_name": "Caleb", "last_name": "Jones", "aliases": [], "advancement_level": 6, "responsibility_tier": 4, "collective_growth_phase": 3},
]

SESSION_PLAN = {
    "session_plan": [
        {"block_order": 1, "block_name": "Rondo Warmup", "format": "4v1", "skills": ["Passing"], "duration_minutes": 15},
        {"block_order": 2, "block_name": "Advantage Finishing", "format": "2v1", "skills": ["Finishing"], "duration_minutes": 20},
    ],
}


@pytest.fixture
def seeded(db_session):
    """Coach c1, group g1 with a five-player roster, session s1 and a small tag vocabulary."""
    db_session.add(Group(id="g1", name="Varsity"))
    db_session.add(Person(id="c1", display_name="Coach Carter", first_name="Ken", last_name="Carter", roles=["coach"]))
    db_session.add(PersonGroup(person_id="c1", group_id="g1", role="coach"))
    for row in ROSTER:
        db_session.add(Person(roles=["player"], **row))
        db_session.add(PersonGroup(person_id=row["id"], group_id="g1", role="player"))
    db_session.add(PracticeSession(
        id="s1",
        title="Tuesday Practice",
        team_id="g1",
        coach_id="c1",
        status="pending_approval",
        session_date=date(2025, 5, 20),
        session_plan=SESSION_PLAN,
        overall_theme_tags=["Spacing"],
        planned_attendance=["p1", "p2", "p3"],
        responsibility_tiers=[4],
        collective_growth_phase=2,
        reflection_fields={},
    ))
    db_session.add_all([
        Tag(id="t-cs", name="Catch and Shoot", tag_type="skill", synonyms=["catch-and-shoot"]),
        Tag(id="t-bh", name="Ball Handling", tag_type="skill", synonyms=["dribbling"]),
        Tag(id="t-ld", name="Limited Dribbles", tag_type="constraint", synonyms=[]),
        Tag(id="t-ci", name="Competitive Intensity", tag_type="theme", synonyms=[]),
    ])
    db_session.commit()
    return db_session
