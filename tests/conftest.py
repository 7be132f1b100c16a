from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import fieldops.models  # noqa: F401  registers every table
from fieldops.database import Base, get_db
from fieldops.models.business import Business
from fieldops.models.task import Task, TaskPriority, TaskStatus, TaskType
from fieldops.models.team import Team
from main import app

ROUTE_DAY = date(2026, 10, 19)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def business(db):
    business = Business(name="Acme Field Services", is_active=True)
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


@pytest.fixture
def make_team(db, business):
    def _make_team(**overrides):
        values = {
            "business_id": business.id,
            "name": "Team Alpha",
            "is_active": True,
            "is_available_for_routing": True,
            "skills": [],
            "equipment": [],
            "alternate_ids": [],
            "max_daily_tasks": 8,
        }
        values.update(overrides)
        team = Team(**values)
        db.add(team)
        db.commit()
        db.refresh(team)
        return team
    return _make_team


@pytest.fixture
def make_task(db, business):
    def _make_task(latitude=40.0, longitude=-74.0, **overrides):
        values = {
            "business_id": business.id,
            "name": f"Task at {latitude},{longitude}",
            "task_type": TaskType.maintenance,
            "priority": TaskPriority.medium,
            "status": TaskStatus.pending,
            "latitude": latitude,
            "longitude": longitude,
            "address": "1 Main St, Springfield",
            "scheduled_date": ROUTE_DAY,
            "estimated_duration": 30,
            "skills_required": [],
            "equipment_required": [],
        }
        values.update(overrides)
        task = Task(**values)
        db.add(task)
        db.commit()
        db.refresh(task)
        return task
    return _make_task
