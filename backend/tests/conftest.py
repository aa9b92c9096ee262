"""
Shared fixtures: in-memory SQLite, a seeded assignment, and an API client.

The default assignment (assign-001, October 2025) has five interaction logs
inside its period, covering three tools, plus one log attributed to it but
logged after the period ends.
"""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from aiguidebook.database import Base, enable_sqlite_foreign_keys, get_db
from aiguidebook.models.db_models import AssignmentDB, InteractionLogDB, OriginTag
from aiguidebook.services.integrity import IntegrityRegistry


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def valid_reflection():
    """Two prompts that pass the reflection validator."""
    return (
        "I used ChatGPT mainly to understand crossover operators before writing my own "
        "implementation, and I checked every suggestion against the lecture notes because "
        "several early answers contained subtle mistakes about selection pressure.",
        "Next time I would write the tests myself first, then ask the assistant only for "
        "explanations, since relying on generated code made debugging slower and taught me "
        "less than expected about mutation rates.",
    )


@pytest.fixture
def registry():
    registry = IntegrityRegistry()
    yield registry
    registry.close_all()


# =============================================================================
# DATA FACTORIES
# =============================================================================

@pytest.fixture
def make_assignment(db):
    def _make(assignment_id, period_start, period_end, title=None):
        assignment = AssignmentDB(
            id=assignment_id,
            course_id="course-inf3490",
            course_name="INF3490 - Biologically Inspired Computing",
            title=title or f"Assignment {assignment_id}",
            period_start=period_start,
            period_end=period_end,
        )
        db.add(assignment)
        db.commit()
        return assignment
    return _make


@pytest.fixture
def make_log(db):
    def _make(log_id, assignment_id, tool_name, logged_at,
              origin_tag=OriginTag.STUDENT_TAGGED, category="code generation",
              description="Helped with the assignment."):
        log = InteractionLogDB(
            id=log_id,
            assignment_id=assignment_id,
            tool_name=tool_name,
            category=category,
            description=description,
            logged_at=logged_at,
            origin_tag=origin_tag,
        )
        db.add(log)
        db.commit()
        return log
    return _make


@pytest.fixture
def assignment(make_assignment, make_log):
    """assign-001 with five scoped logs (ChatGPT x3, GitHub Copilot, Claude)."""
    assignment = make_assignment("assign-001", datetime(2025, 10, 1), datetime(2025, 10, 31, 23, 59, 59))
    make_log("log-001", "assign-001", "ChatGPT", datetime(2025, 10, 2, 10, 0))
    make_log("log-002", "assign-001", "ChatGPT", datetime(2025, 10, 5, 14, 30))
    make_log("log-003", "assign-001", "GitHub Copilot", datetime(2025, 10, 10, 9, 0))
    make_log("log-004", "assign-001", "Claude", datetime(2025, 10, 15, 16, 45), category="debugging")
    # Exactly on the period end: inclusive
    make_log("log-005", "assign-001", "ChatGPT", datetime(2025, 10, 31, 23, 59, 59))
    # Attributed but outside the period: never scoped
    make_log("log-006", "assign-001", "ChatGPT", datetime(2025, 11, 5, 11, 0))
    return assignment


@pytest.fixture
def overlapping(assignment, make_assignment, make_log):
    """assign-002 overlapping assign-001 from Oct 20, with one unassigned log in the overlap."""
    second = make_assignment("assign-002", datetime(2025, 10, 20), datetime(2025, 11, 30, 23, 59, 59))
    make_log("log-007", None, "Claude", datetime(2025, 10, 25, 12, 0), origin_tag=OriginTag.UNASSIGNED)
    return second


# =============================================================================
# API CLIENT
# =============================================================================

@pytest.fixture
def client(session_factory, registry, tmp_path):
    """TestClient with storage and application state overridden; lifespan not run."""
    from aiguidebook.dependencies import get_guidance, get_registry
    from aiguidebook.guidance import GuidanceConfig
    from aiguidebook.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    guidance = GuidanceConfig(path=str(tmp_path / "guidance.json"))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_guidance] = lambda: guidance
    yield TestClient(app)
    app.dependency_overrides.clear()
