import json
import sqlite3

from letterbox import config, db


def test_vacuum_reports_page_stats(tmp_path):
    conn = db.open_db(tmp_path / "letters.db")
    conn.execute("CREATE TABLE filler (x TEXT)")
    conn.executemany("INSERT INTO filler VALUES (?)", [("x" * 1000,) for _ in range(200)])
    conn.commit()
    conn.execute("DROP TABLE filler")
    conn.commit()
    result = db.vacuum_db(conn)
    assert result["ok"] is True
    assert result["before"]["free_pages"] > 0
    assert result["after"]["free_pages"] == 0
    assert result["saved_bytes"] > 0
    conn.close()


def test_log_maintenance_run_persists_details():
    conn = db.get_connection()
    db.init_db(conn)
    run_id = db.log_maintenance_run(conn, "vacuum", "ok", "2024-01-01T00:00:00", None, 1.5, {"saved": 10})
    assert run_id > 0
    row = conn.execute("SELECT command, status, duration, details FROM maintenance_runs WHERE id = ?", (run_id,)).fetchone()
    assert row["command"] == "vacuum"
    assert row["duration"] == 1.5
    assert json.loads(row["details"]) == {"saved": 10}


def test_log_maintenance_run_without_table_returns_zero():
    conn = sqlite3.connect(":memory:")
    assert db.log_maintenance_run(conn, "vacuum", "ok") == 0


def test_migrate_adds_missing_columns_and_tables(tmp_path):
    path = tmp_path / "old.db"
    conn = sqlite3.connect(str(path))
    conn.executescript(
        """
        CREATE TABLE emails (
            id TEXT PRIMARY KEY,
            subject TEXT NOT NULL,
            body TEXT NOT NULL,
            status TEXT NOT NULL,
            publish_date TEXT,
            creation_date TEXT NOT NULL,
            modification_date TEXT NOT NULL,
            synced_at TEXT NOT NULL
        );
        CREATE TABLE sync_metadata (key TEXT PRIMARY KEY, value TEXT NOT NULL, updated_at TEXT NOT NULL);
        INSERT INTO sync_metadata VALUES ('schema_version', '1', '2023-01-01');
        """
    )
    conn.commit()
    result = db.migrate_db(conn)
    assert result["added_columns"] == ["normalized_markdown", "author"]
    assert result["created_tables"] == ["tags", "email_tags"]
    cols = {r[1] for r in conn.execute("PRAGMA table_info(emails)").fetchall()}
    assert {"normalized_markdown", "author"}.issubset(cols)
    assert db.get_metadata(conn, "schema_version") == str(config.SCHEMA_VERSION)

    again = db.migrate_db(conn)
    assert again["added_columns"] == []
    assert again["created_tables"] == []
    conn.close()


def test_analyze_space_counts_rows_and_images():
    conn = db.get_connection()
    db.init_db(conn)
    db.upsert_email(
        conn,
        {"id": "e1", "subject": "s", "body": "12345", "status": "sent", "modification_date": "2024-01-01"},
        normalized_markdown="123",
    )
    conn.execute(
        "INSERT INTO embedded_images (email_id, original_url, image_data, mime_type, file_size, downloaded_at) VALUES (?, ?, ?, ?, ?, ?)",
        ("e1", "https://x/a.png", b"abcd", "image/png", 4, "2024-01-01"),
    )
    conn.commit()
    report = db.analyze_space(conn)
    assert report["tables"]["emails"] == 1
    assert report["body_bytes"] == 5
    assert report["markdown_bytes"] == 3
    assert report["image_count"] == 1
    assert report["images_by_type"] == [{"mime_type": "image/png", "count": 1, "bytes": 4}]
    assert report["pages"]["page_size"] > 0
