import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine, SQLModel
from sqlmodel.pool import StaticPool

from api.uploads.deps import get_upload_location
from api.uploads.models import UploadLocation
from core.deps import get_db
from main import app


def make_file(public_dir: Path, relative: str, age_days: float = 0) -> Path:
    """Create public_dir/relative, optionally back-dating its mtime"""
    path = public_dir / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"data")
    if age_days:
        stamp = path.stat().st_mtime - age_days * 24 * 60 * 60
        os.utime(path, (stamp, stamp))
    return path


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="public_dir")
def public_dir_fixture(tmp_path: Path) -> Path:
    public_dir = tmp_path / "public"
    (public_dir / "uploads").mkdir(parents=True)
    return public_dir


@pytest.fixture(name="location")
def location_fixture(public_dir: Path) -> UploadLocation:
    return UploadLocation(public_dir=public_dir)


@pytest.fixture(name="client")
def client_fixture(session: Session, location: UploadLocation):
    def get_db_override():
        return session

    def get_upload_location_override():
        return location

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_upload_location] = get_upload_location_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
