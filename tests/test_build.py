import json

import pytest

from letterbox import build, db
from letterbox.images import EmbeddedImage


def make_archive(path):
    conn = db.open_db(path)
    emails = [
        ("e1", "first letter", "2024-01-05T10:00:00Z", "sent", "first-letter"),
        ("e2", "Second Letter!", "2024-02-05T10:00:00Z", "imported", None),
        ("e3", "draft letter", "2024-03-05T10:00:00Z", "draft", None),
    ]
    for email_id, subject, date, status, slug in emails:
        db.upsert_email(
            conn,
            {
                "id": email_id,
                "subject": subject,
                "body": f"<p>body of {email_id}</p>",
                "status": status,
                "publish_date": date,
                "modification_date": date,
                "slug": slug,
                "description": f"about {email_id}",
                "secondary_id": int(email_id[1]),
            },
        )
    image_id = db.store_embedded_image(conn, "e1", EmbeddedImage("https://x/a.gif", b"GIF89a", "image/gif", 6))
    db.update_normalized_markdown(conn, "e1", f"Hello\n\n![pic](/api/images/{image_id})")
    db.add_tags_to_email(conn, "e1", ["Poetry"])
    conn.commit()
    conn.close()
    return image_id


def test_create_slug():
    assert build.create_slug("Hello, World!", "id1") == "hello-world"
    assert build.create_slug("!!!", "id1") == "id1"
    assert build.email_slug({"id": "x", "slug": "given", "subject": "Other"}) == "given"


def test_format_dates():
    assert build.format_date("2024-03-04T10:00:00Z") == "March 4, 2024"
    assert build.format_date("not a date") == "not a date"
    assert build.format_date(None) == ""
    assert build.rfc822_date("2024-03-04T10:00:00Z") == "Mon, 04 Mar 2024 10:00:00 +0000"


def test_rewrite_local_images_uses_exported_extension():
    text = "![a](/api/images/3) ![b](/api/images/4) ![c](https://x/c.png)"
    out = build.rewrite_local_images(text, {3: "gif"}, base_path="/letters")
    assert out == "![a](/letters/images/3.gif) ![b](/letters/images/4.png) ![c](https://x/c.png)"


def test_render_markdown():
    html = build.render_markdown("# Title\n\n- a\n- b")
    assert "<h1>Title</h1>" in html
    assert "<li>a</li>" in html


def test_build_writes_site(tmp_path, monkeypatch):
    db_path = tmp_path / "letters.db"
    image_id = make_archive(db_path)
    parquet_calls = []
    monkeypatch.setattr(build, "export_db_parquet", lambda out_dir, path: parquet_calls.append(path))

    out = tmp_path / "site"
    summary = build.build(out, db_path)

    assert summary == {"letters": 2, "images": 1}
    assert parquet_calls == [db_path]
    assert (out / "images" / f"{image_id}.gif").read_bytes() == b"GIF89a"
    assert (out / "static" / "style.css").exists()

    index = (out / "index.html").read_text(encoding="utf-8")
    assert "first letter" in index
    assert "Second Letter!" in index
    assert "draft letter" not in index

    page = (out / "letters" / "first-letter.html").read_text(encoding="utf-8")
    assert f'src="/letters/images/{image_id}.gif"' in page
    assert "#Poetry" in page
    assert "second-letter.html" in page
    assert (out / "letters" / "second-letter.html").exists()

    feed = (out / "feed.xml").read_text(encoding="utf-8")
    assert "<guid isPermaLink=\"false\">e1</guid>" in feed
    assert "Fri, 05 Jan 2024 10:00:00 +0000" in feed

    index_json = json.loads((out / "api" / "emails.json").read_text(encoding="utf-8"))
    assert [e["id"] for e in index_json] == ["e2", "e1"]
    bulk = json.loads((out / "api" / "emails-full.json").read_text(encoding="utf-8"))
    assert bulk["version"] == 1 and bulk["count"] == 2
    single = json.loads((out / "api" / "emails" / "e1.json").read_text(encoding="utf-8"))
    assert single["tags"][0]["normalized_name"] == "poetry"
    assert f"images/{image_id}.gif" in single["body"]


def add_letter(conn, email_id, subject, date, status="sent", slug=None, author=None):
    db.upsert_email(
        conn,
        {
            "id": email_id,
            "subject": subject,
            "body": f"<p>{subject}</p>",
            "status": status,
            "publish_date": date,
            "modification_date": date,
            "slug": slug,
        },
        author=author,
    )


def test_group_by_author_primary_first_then_alphabetical(tmp_path):
    conn = db.open_db(tmp_path / "letters.db")
    add_letter(conn, "p1", "thank you notes", "2024-01-01T00:00:00Z")
    add_letter(conn, "g1", "tyn (Zed)", "2024-01-02T00:00:00Z", author="Zed")
    add_letter(conn, "g2", "tyn (L)", "2024-01-03T00:00:00Z", author="L")
    add_letter(conn, "g3", "tyn (ash)", "2024-01-04T00:00:00Z", author="ash")
    add_letter(conn, "g4", "tyn (ash) again", "2024-01-05T00:00:00Z", author="ash")
    add_letter(conn, "d1", "unsent (Nobody)", "2024-01-06T00:00:00Z", status="draft", author="Nobody")
    conn.commit()

    letters = build.load_letters(conn, {})
    groups = build.group_by_author(conn, letters)
    conn.close()

    assert [g["author"] for g in groups] == [None, "ash", "L", "Zed"]
    assert groups[0]["primary"] is True
    assert [letter["id"] for letter in groups[1]["letters"]] == ["g4", "g3"]


def test_build_writes_contributors_page(tmp_path, monkeypatch):
    db_path = tmp_path / "letters.db"
    conn = db.open_db(db_path)
    add_letter(conn, "p1", "thank you notes", "2024-01-01T00:00:00Z", slug="thank-you-notes")
    add_letter(conn, "g1", "tyn (ash)", "2024-01-02T00:00:00Z", slug="tyn-ash", author="ash")
    conn.commit()
    conn.close()
    monkeypatch.setattr(build, "export_db_parquet", lambda out_dir, path: None)

    out = tmp_path / "site"
    build.build(out, db_path)

    page = (out / "contributors.html").read_text(encoding="utf-8")
    assert page.index("Primary author") < page.index("ash")
    assert 'href="/letters/letters/thank-you-notes.html"' in page
    assert 'href="/letters/letters/tyn-ash.html"' in page
    assert "contributors.html" in (out / "index.html").read_text(encoding="utf-8")


def test_duplicate_slugs_do_not_overwrite_pages(tmp_path, monkeypatch, caplog):
    db_path = tmp_path / "letters.db"
    conn = db.open_db(db_path)
    add_letter(conn, "a1", "Weekly one", "2024-01-01T00:00:00Z", slug="weekly")
    add_letter(conn, "a2", "Weekly two", "2024-02-01T00:00:00Z", slug="weekly")
    conn.commit()
    conn.close()
    monkeypatch.setattr(build, "export_db_parquet", lambda out_dir, path: None)

    out = tmp_path / "site"
    with caplog.at_level("WARNING", logger="letterbox.build"):
        build.build(out, db_path)

    assert "Weekly two" in (out / "letters" / "weekly.html").read_text(encoding="utf-8")
    assert "Weekly one" in (out / "letters" / "weekly-one-a1.html").read_text(encoding="utf-8")
    assert "weekly-one-a1.html" in (out / "letters" / "weekly.html").read_text(encoding="utf-8")
    assert "already used" in caplog.text


def test_render_templates_with_custom_dir(tmp_path, monkeypatch):
    templates_dir = tmp_path / "templates"
    templates_dir.mkdir()
    (templates_dir / "index.html.jinja2").write_text("Hello {{ title }}", encoding="utf-8")
    (templates_dir / "feed.xml.jinja2").write_text("<rss>{{ letters|length }}</rss>", encoding="utf-8")
    (templates_dir / "letter.html.jinja2").write_text("{{ letter.subject }}", encoding="utf-8")
    (templates_dir / "contributors.html.jinja2").write_text("{{ contributors|length }}", encoding="utf-8")
    monkeypatch.setattr(build, "TEMPLATES_DIR", templates_dir)

    out = tmp_path / "out"
    build.render_templates({"title": "X", "letters": [], "contributors": []}, out, [{"page_slug": "one", "subject": "One"}])
    assert (out / "index.html").read_text(encoding="utf-8") == "Hello X"
    assert (out / "contributors.html").read_text(encoding="utf-8") == "0"
    assert (out / "letters" / "one.html").read_text(encoding="utf-8") == "One"


def test_export_db_parquet_skips_missing_db(tmp_path):
    build.export_db_parquet(tmp_path / "out", tmp_path / "missing.db")
    assert not (tmp_path / "out" / "db").exists()


def test_export_db_parquet_failures_do_not_raise(tmp_path, monkeypatch):
    db_path = tmp_path / "letters.db"
    make_archive(db_path)

    class BrokenDuck:
        def connect(self, database=None):
            raise RuntimeError("no duckdb here")

    monkeypatch.setattr(build, "duckdb", BrokenDuck())
    build.export_db_parquet(tmp_path / "out", db_path)
    assert (tmp_path / "out" / "db").exists()
