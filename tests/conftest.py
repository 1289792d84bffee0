import os
# Override DATABASE_URL before any app imports to avoid PostgreSQL driver requirement
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ.pop("DATABASE_PUBLIC_URL", None)
os.environ["SENTRY_DSN"] = ""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from exam_sessions.platform.database import Base, get_db
from exam_sessions.platform.clock import FrozenClock
from exam_sessions.platform.middleware import _rate_limit_store
from exam_sessions.platform.security import create_access_token
from exam_sessions.deps import build_session_service, get_clock
from exam_sessions.main import app
from exam_sessions.models.assessment import Assessment, AssessmentKind
from exam_sessions.models.access_grant import AccessGrant

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Monday 2 March 2026, 09:00 UTC
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# Enable foreign key support for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def clock():
    return FrozenClock(T0)


@pytest.fixture(scope="function")
def service(db, clock):
    return build_session_service(db, clock)


@pytest.fixture(scope="function")
def client(db, clock):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    Base.metadata.create_all(bind=engine)
    # Clear in-memory rate limit state between tests to prevent 429 bleed-through
    _rate_limit_store.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    _rate_limit_store.clear()
    Base.metadata.drop_all(bind=engine)


# ---------------------------------------------------------------------------
# Factory helpers: create test entities quickly and consistently
# ---------------------------------------------------------------------------

_counter = 0


def _unique_id() -> str:
    global _counter
    _counter += 1
    return f"{_counter}-{uuid.uuid4().hex[:8]}"


def sample_questions(count=10, options=4):
    """Question ``i`` has ``options`` choices and correct answer ``i % options``."""
    return [
        {
            "id": f"q{i + 1}",
            "text": f"Question {i + 1}?",
            "options": [f"Option {chr(65 + j)}" for j in range(options)],
            "correct_option_index": i % options,
            "explanation": f"Because {chr(65 + i % options)}.",
        }
        for i in range(count)
    ]


def correct_answers(count=10, options=4):
    return [i % options for i in range(count)]


def make_assessment(db, **overrides):
    """Insert an active, unscheduled weekly assessment unless overridden."""
    questions = overrides.pop("questions", None) or sample_questions(overrides.pop("question_count", 10))
    values = {
        "id": f"weekly-{_unique_id()}",
        "kind": AssessmentKind.WEEKLY,
        "title": "Weekly Practice",
        "description": "",
        "questions": questions,
        "exam_duration_minutes": 90,
        "total_questions": len(questions),
        "window_opens_at": None,
        "window_duration_minutes": None,
        "is_active": True,
        "master_enabled": True,
        "requires_entitlement": False,
        "passing_percentage": 70,
    }
    values.update(overrides)
    assessment = Assessment(**values)
    db.add(assessment)
    db.commit()
    db.refresh(assessment)
    return assessment


def make_grant(db, user_id, assessment_id, expires_at=None):
    grant = AccessGrant(
        user_id=user_id,
        assessment_id=assessment_id,
        payment_reference=f"pay_{_unique_id()}",
        granted_at=T0 - timedelta(days=1),
        expires_at=expires_at,
    )
    db.add(grant)
    db.commit()
    return grant


def auth_headers(user_id=None, email=None, name="Test User", is_admin=False):
    """Mint a bearer token the way the identity service would. Returns (headers, user_id)."""
    user_id = user_id or f"user-{_unique_id()}"
    token = create_access_token(
        user_id,
        email=email or f"{user_id}@test.com",
        name=name,
        is_admin=is_admin,
    )
    return {"Authorization": f"Bearer {token}"}, user_id


def admin_headers():
    headers, _ = auth_headers(user_id="admin-1", name="Admin", is_admin=True)
    return headers
