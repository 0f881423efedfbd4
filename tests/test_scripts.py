"""
Tests for the upload maintenance command line scripts
"""
import json
from contextlib import contextmanager

import pytest
from sqlmodel import Session

from api.uploads.models import Product, UploadLocation
from core.db import DatabaseUnavailableError
from scripts import cleanup_uploads, fix_missing_uploads, verify_uploads
from tests.conftest import make_file


@pytest.fixture(name="use_session")
def use_session_fixture(session: Session, monkeypatch):
    """Point every script at the test session"""
    @contextmanager
    def test_scope():
        yield session

    for module in (verify_uploads, cleanup_uploads, fix_missing_uploads):
        monkeypatch.setattr(module, "session_scope", test_scope)
    return session


def _run(module, argv, capsys) -> dict:
    module.main(argv)
    return json.loads(capsys.readouterr().out)


def test_verify_prints_report(use_session, location: UploadLocation, capsys):
    make_file(location.public_dir, "uploads/products/a.jpg")
    make_file(location.public_dir, "uploads/products/b.jpg")
    use_session.add(Product(image_url="/uploads/products/a.jpg"))
    use_session.add(Product(image_url="https://cdn.example.com/x.png"))
    use_session.commit()

    report = _run(verify_uploads, ["--public-dir", str(location.public_dir)], capsys)

    assert report["missing"] == []
    assert report["orphans_preview"] == ["uploads/products/b.jpg"]
    assert report["counts"]["excluded_url_count"] == 1


def test_verify_with_sources_file(use_session, location: UploadLocation, tmp_path, capsys):
    use_session.add(Product(image_url="/uploads/products/a.jpg", model_3d="/uploads/m.glb"))
    use_session.commit()
    sources_file = tmp_path / "sources.json"
    sources_file.write_text(json.dumps([
        {"name": "models", "table_name": "Products", "url_columns": ["Model3D"]},
        {"name": "legacy", "table_name": "LegacyImages", "url_columns": ["url"]},
    ]))

    report = _run(verify_uploads, [
        "--public-dir", str(location.public_dir),
        "--sources", str(sources_file),
    ], capsys)

    assert report["missing"] == ["uploads/m.glb"]
    assert [s["name"] for s in report["sources"]] == ["models", "legacy"]
    assert report["sources"][1]["error"] is not None


def test_verify_invalid_sources_file(use_session, location: UploadLocation, tmp_path):
    sources_file = tmp_path / "sources.json"
    sources_file.write_text('[{"name": "no table"}]')

    with pytest.raises(SystemExit) as exc_info:
        verify_uploads.main(["--public-dir", str(location.public_dir), "--sources", str(sources_file)])
    assert exc_info.value.code == 1


def test_verify_create_sources(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    verify_uploads.main(["--create-sources"])

    data = json.loads((tmp_path / "upload_sources.json").read_text())
    assert data[0]["table_name"] == "Products"
    assert data[0]["json_columns"] == ["ThumbnailURLs"]


def test_connection_failure_exits(location: UploadLocation, monkeypatch, capsys):
    @contextmanager
    def broken_scope():
        raise DatabaseUnavailableError("Cannot connect to database: refused")
        yield  # pragma: no cover

    for module in (verify_uploads, cleanup_uploads, fix_missing_uploads):
        monkeypatch.setattr(module, "session_scope", broken_scope)
        with pytest.raises(SystemExit) as exc_info:
            module.main(["--public-dir", str(location.public_dir)])
        assert exc_info.value.code == 1

    assert capsys.readouterr().out == ""


def test_cleanup_dry_run(use_session, location: UploadLocation, capsys):
    orphan = make_file(location.public_dir, "uploads/products/b.jpg", age_days=30)

    report = _run(cleanup_uploads, [
        "--public-dir", str(location.public_dir), "--mode", "delete", "--dry-run",
    ], capsys)

    assert report["mode"] == "delete"
    assert report["counts"]["orphan_candidates"] == 1
    assert orphan.exists()


def test_cleanup_quarantine(use_session, location: UploadLocation, capsys):
    orphan = make_file(location.public_dir, "uploads/products/b.jpg", age_days=30)

    report = _run(cleanup_uploads, [
        "--public-dir", str(location.public_dir), "--days", "1",
    ], capsys)

    assert report["counts"]["succeeded"] == 1
    assert not orphan.exists()
    assert (location.quarantine_dir / "products" / "b.jpg").exists()


def test_cleanup_rejects_bad_mode(location: UploadLocation):
    with pytest.raises(SystemExit) as exc_info:
        cleanup_uploads.main(["--public-dir", str(location.public_dir), "--mode", "shred"])
    assert exc_info.value.code == 2


def test_fix_missing_placeholder(use_session, location: UploadLocation, capsys):
    use_session.add(Product(image_url="/uploads/products/gone.jpg"))
    use_session.commit()

    report = _run(fix_missing_uploads, [
        "--public-dir", str(location.public_dir),
        "--mode", "placeholder",
        "--placeholder", "/uploads/placeholder.png",
    ], capsys)

    assert report["updated"] == 1
    use_session.expire_all()
    assert use_session.get(Product, 1).image_url == "/uploads/placeholder.png"


@pytest.mark.parametrize("contents", [None, b"\xff\xfe[not utf-8"])
def test_unreadable_sources_file_exits(location: UploadLocation, tmp_path, contents):
    sources_file = tmp_path / "sources"
    if contents is None:
        sources_file.mkdir()
    else:
        sources_file.write_bytes(contents)

    with pytest.raises(SystemExit) as exc_info:
        verify_uploads.main(["--public-dir", str(location.public_dir), "--sources", str(sources_file)])
    assert exc_info.value.code == 1


def test_unconfigured_database_exits(location: UploadLocation, monkeypatch, capsys):
    """Without a configured database nothing runs and no file is touched"""
    from core.config import get_settings
    from core.db import reset_engine

    for var in ("SQLALCHEMY_DATABASE_URI", "DB_SERVER", "ENV_SECRETS"):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    reset_engine()
    old = make_file(location.public_dir, "uploads/products/b.jpg", age_days=30)

    try:
        for module in (verify_uploads, cleanup_uploads, fix_missing_uploads):
            with pytest.raises(SystemExit) as exc_info:
                module.main(["--public-dir", str(location.public_dir)])
            assert exc_info.value.code == 1
    finally:
        reset_engine()
        get_settings.cache_clear()

    assert old.exists()
    assert capsys.readouterr().out == ""


def test_cleanup_exits_when_no_source_is_readable(engine, location: UploadLocation, monkeypatch, capsys):
    old = make_file(location.public_dir, "uploads/products/b.jpg", age_days=30)

    @contextmanager
    def empty_scope():
        with Session(engine) as session:
            yield session

    monkeypatch.setattr(cleanup_uploads, "session_scope", empty_scope)

    with pytest.raises(SystemExit) as exc_info:
        cleanup_uploads.main(["--public-dir", str(location.public_dir)])
    assert exc_info.value.code == 1
    assert old.exists()
    assert capsys.readouterr().out == ""
