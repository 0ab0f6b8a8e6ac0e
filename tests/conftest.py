from __future__ import annotations

import os
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import importlib

fastapi_app = importlib.import_module("app.main").app
from app.db.base import Base
from app.db.session import configure_sqlite_engine, get_db
from app.schemas.master_document import MasterDocumentCreate
from app.services.document_numbering_service import DocumentNumberingService
from app.services.master_document_service import MasterDocumentService

# Ensure all models are registered with SQLAlchemy metadata
import app.models  # noqa: F401

PROJECT_ID = "proj-1"
PROJECT_CODE = "PRJ"


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # Single shared connection: plain BEGIN is enough, but SAVEPOINT needs
    # pysqlite's implicit transaction handling turned off.
    configure_sqlite_engine(engine, immediate=False)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db_session(engine):
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    with TestClient(fastapi_app) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def numbered_project(db_session):
    config = DocumentNumberingService.initialize_project_numbering(
        db_session,
        PROJECT_ID,
        PROJECT_CODE,
        created_by="admin@example.com",
    )
    db_session.commit()
    return config


@pytest.fixture(scope="function")
def make_document(db_session, numbered_project):
    def _make(title: str, discipline_code: str = "01", sub_code: str | None = None, **extra):
        document = MasterDocumentService.create_master_document(
            db_session,
            PROJECT_ID,
            MasterDocumentCreate(
                discipline_code=discipline_code,
                sub_code=sub_code,
                document_title=title,
                **extra,
            ),
            created_by="engineer@example.com",
        )
        db_session.commit()
        return document

    return _make


@pytest.fixture(scope="function")
def advance_status(db_session):
    """Walk a document through the given statuses, committing each step."""

    def _advance(document_id: str, *statuses: str, revision: str | None = None):
        document = None
        for status in statuses:
            document = MasterDocumentService.update_document_status(
                db_session,
                PROJECT_ID,
                document_id,
                status,
                changed_by="engineer@example.com",
                revision=revision,
            )
            db_session.commit()
        return document

    return _advance
