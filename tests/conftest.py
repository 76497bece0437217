"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests,
and a stub oracle so no request ever reaches the AI provider.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_anima.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker

from anima.db.base import Base, get_db
from anima.main import app
from anima.models import Constellation, Entry, Symbol, SymbolConnection
from anima.schemas.analysis import AnalysisResult
from anima.services.oracle import get_oracle

SQLITE_URL = "sqlite:///./test_anima.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class StubOracle:
    """Returns a canned collaborator payload; records what it was asked."""

    def __init__(self):
        self.payload = {
            "analysis_log": "Kompilacja Cienia w toku.",
            "detected_symbols": [],
            "dominant_archetype": "Cień",
            "reflection_question": "Czego unikasz?",
            "visual_mood": "Zgniła zieleń",
        }
        self.error = None
        self.calls = []

    def analyze(self, kind, content):
        self.calls.append((kind, content))
        if self.error is not None:
            raise self.error
        return AnalysisResult.from_collaborator(dict(self.payload))


def make_analysis(symbols, archetype="Cień", **extra):
    payload = {
        "analysis_log": "log",
        "detected_symbols": symbols,
        "dominant_archetype": archetype,
        "reflection_question": "?",
        "visual_mood": "mgła",
    }
    payload.update(extra)
    return AnalysisResult.from_collaborator(payload)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    session = TestingSessionLocal()
    try:
        for model in (SymbolConnection, Symbol, Entry, Constellation):
            session.execute(delete(model))
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def oracle():
    return StubOracle()


@pytest.fixture()
def client(db, oracle):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oracle] = lambda: oracle
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
