import sqlite3
import sys

import pytest

from letterbox import config, db
from letterbox.images import EmbeddedImage


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "data" / "letters.db"
    monkeypatch.setattr(config, "DB_PATH", str(path))
    return path


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["letterbox", *argv])
    import letterbox.main as lb_main

    lb_main.main()


def seed(path):
    conn = db.open_db(path)
    db.upsert_email(
        conn,
        {
            "id": "e1",
            "subject": "thank you notes (L)",
            "body": '<p>Hi</p><img src="https://x/a.gif">',
            "status": "sent",
            "publish_date": "2024-01-01T00:00:00Z",
            "modification_date": "2024-01-01T00:00:00Z",
        },
    )
    image_id = db.store_embedded_image(conn, "e1", EmbeddedImage("https://x/a.gif", b"GIF89a", "image/gif", 6))
    db.update_normalized_markdown(conn, "e1", f"Hi\n\n![](/api/images/{image_id})")
    conn.commit()
    conn.close()


def test_db_init_creates_schema(db_path, monkeypatch, capsys):
    assert not db_path.exists()
    run_cli(monkeypatch, "db-init")
    assert db_path.exists()
    conn = sqlite3.connect(str(db_path))
    tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()}
    conn.close()
    assert {"emails", "embedded_images", "tags", "maintenance_runs"}.issubset(tables)
    assert "Database initialized" in capsys.readouterr().out


def test_db_init_idempotent(db_path, monkeypatch):
    run_cli(monkeypatch, "db-init")
    conn = sqlite3.connect(str(db_path))
    first = conn.execute("SELECT type, name, sql FROM sqlite_master ORDER BY type, name").fetchall()
    conn.close()
    run_cli(monkeypatch, "db-init")
    conn = sqlite3.connect(str(db_path))
    second = conn.execute("SELECT type, name, sql FROM sqlite_master ORDER BY type, name").fetchall()
    conn.close()
    assert first == second


def test_status_on_fresh_db(db_path, monkeypatch, capsys):
    run_cli(monkeypatch, "status")
    out = capsys.readouterr().out
    assert "Total emails:      0" in out
    assert "Last sync:         never" in out


def test_sync_without_api_key_exits(db_path, monkeypatch):
    monkeypatch.delenv(config.API_KEY_ENV, raising=False)
    with pytest.raises(SystemExit) as exc:
        run_cli(monkeypatch, "sync")
    assert exc.value.code == 1


def test_sync_uses_client(db_path, monkeypatch, capsys):
    import letterbox.cli.sync as cli_sync

    class FakeClient:
        session = None

        def iter_emails(self, params=None):
            yield {
                "id": "e9",
                "subject": "hello",
                "body": "hi",
                "status": "sent",
                "modification_date": "2024-01-01T00:00:00Z",
            }

    monkeypatch.setattr(cli_sync, "get_client", lambda: FakeClient())
    run_cli(monkeypatch, "sync", "--full")
    assert "synced 1 emails" in capsys.readouterr().out
    conn = db.get_connection(db_path)
    assert db.get_metadata(conn, "last_sync_status") == "success"
    conn.close()


def test_tags_add_list_remove(db_path, monkeypatch, capsys):
    seed(db_path)
    run_cli(monkeypatch, "tags", "add", "e1", "Poetry", "Grief")
    run_cli(monkeypatch, "tags", "list")
    out = capsys.readouterr().out
    assert "Poetry (poetry)" in out
    run_cli(monkeypatch, "tags", "remove", "e1", "grief")
    assert "removed 1 tag(s)" in capsys.readouterr().out
    run_cli(monkeypatch, "tags", "stats")
    assert "Total tags:            2" in capsys.readouterr().out


def test_tags_add_unknown_email_exits(db_path, monkeypatch):
    with pytest.raises(SystemExit):
        run_cli(monkeypatch, "tags", "add", "nope", "x")


def test_export_email_inlines_images(db_path, tmp_path, monkeypatch):
    seed(db_path)
    out = tmp_path / "e1.html"
    run_cli(monkeypatch, "export-email", "e1", "--out", str(out))
    html = out.read_text(encoding="utf-8")
    assert "data:image/gif;base64,R0lGODlh" in html
    assert "/api/images/" not in html
    assert "<title>thank you notes (L)</title>" in html


def test_authors_dry_run_then_apply(db_path, monkeypatch, capsys):
    seed(db_path)
    run_cli(monkeypatch, "authors", "--dry-run")
    assert "would change 1 of 1" in capsys.readouterr().out
    run_cli(monkeypatch, "authors")
    conn = db.get_connection(db_path)
    assert db.get_email(conn, "e1")["author"] == "L"
    conn.close()


def test_manage_db_commands_log_runs(db_path, monkeypatch, capsys):
    seed(db_path)
    run_cli(monkeypatch, "manage-db", "migrate")
    run_cli(monkeypatch, "manage-db", "vacuum")
    run_cli(monkeypatch, "manage-db", "normalize-markdown", "--all")
    run_cli(monkeypatch, "manage-db", "analyze")
    out = capsys.readouterr().out
    assert "schema version" in out
    assert "normalized 1 of 1 emails" in out
    assert "Embedded images: 1" in out

    conn = db.get_connection(db_path)
    runs = conn.execute("SELECT command, status FROM maintenance_runs ORDER BY id").fetchall()
    conn.close()
    finished = [(r["command"], r["status"]) for r in runs if r["status"] != "started"]
    assert finished == [("migrate", "ok"), ("vacuum", "ok"), ("normalize-markdown", "ok")]


def test_no_command_prints_help(monkeypatch, capsys):
    run_cli(monkeypatch)
    assert "usage: letterbox" in capsys.readouterr().out


def test_site_handler_strips_base_path(tmp_path):
    from letterbox.cli.serve import SiteRequestHandler

    handler = SiteRequestHandler.__new__(SiteRequestHandler)
    handler.base_path = "/letters"
    handler.directory = str(tmp_path)
    assert handler.translate_path("/letters/index.html") == str(tmp_path / "index.html")
    assert handler.translate_path("/letters").rstrip("/") == str(tmp_path)
    assert handler.translate_path("/lettersx/a.html") == str(tmp_path / "lettersx" / "a.html")
