"""
Shared fixtures: in-memory SQLite store, orchestrator with a fixed clock,
and an HTTP client wired to both.
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.risk_endpoint import get_orchestrator
from app.main import app
from app.models.auditable_area import AuditableArea, Base
from app.models.database import get_db
from app.models.risk_weight import RiskWeight  # noqa: F401  (registers the table)
from app.scoring.weights import reset_weight_config
from app.services.area_locks import AreaLockRegistry
from app.services.recalculation import RecalculationOrchestrator

TODAY = date(2026, 3, 1)


@pytest.fixture(autouse=True)
def default_weights():
    """Every test starts (and ends) on the documented default weights."""
    reset_weight_config()
    yield
    reset_weight_config()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def orchestrator(session_factory):
    return RecalculationOrchestrator(
        session_factory=session_factory,
        locks=AreaLockRegistry(),
        clock=lambda: TODAY,
    )


@pytest.fixture
def make_area(session_factory):
    """Create an auditable area row and return its id."""
    def _make(name: str = "Treasury Operations", regulatory: bool = False, **kwargs) -> str:
        session = session_factory()
        try:
            area = AuditableArea(
                name=name,
                business_unit=kwargs.pop("business_unit", "Finance"),
                category=kwargs.pop("category", "Financial"),
                regulatory_requirement=regulatory,
                **kwargs,
            )
            session.add(area)
            session.commit()
            return area.id
        finally:
            session.close()
    return _make


@pytest.fixture
def load_area(session_factory):
    """Fresh read of an area with its owned records, detached from any session."""
    def _load(area_id: str):
        session = session_factory()
        try:
            return session.execute(
                select(AuditableArea)
                .options(
                    selectinload(AuditableArea.risk_factor),
                    selectinload(AuditableArea.coverage),
                    selectinload(AuditableArea.priority_result),
                )
                .where(AuditableArea.id == area_id)
            ).scalar_one_or_none()
        finally:
            session.close()
    return _load


@pytest.fixture
def client(orchestrator, session_factory):
    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
