import pytest

from letterbox import buttondown
from letterbox.buttondown import ButtondownClient, build_query
from letterbox.errors import ButtondownError


class FakeResp:
    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload or {}
        self.status_code = status_code
        self.text = text
        self.headers = {}

    def json(self):
        return self._payload


class PagedSession:
    def __init__(self, pages):
        self.pages = pages
        self.urls = []
        self.headers = []

    def request(self, method, url, params=None, headers=None, timeout=None):
        self.urls.append(url)
        self.headers.append(headers)
        for prefix, payload in self.pages.items():
            if url.startswith(prefix):
                return FakeResp(payload)
        return FakeResp({"detail": "Not found."}, status_code=404, text="Not found.")


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(buttondown.time, "sleep", lambda s: None)


def test_build_query_repeats_list_values():
    q = build_query({"status": ["sent", "draft"], "modification_date__start": "2024-01-01", "skip": None})
    assert q == "status=sent&status=draft&modification_date__start=2024-01-01"
    assert build_query(None) == ""


def test_iter_emails_follows_next_links():
    session = PagedSession(
        {
            "https://api.buttondown.com/v1/emails?page=2": {"results": [{"id": "e3"}], "next": None},
            "https://api.buttondown.com/v1/emails": {
                "results": [{"id": "e1"}, {"id": "e2"}],
                "next": "https://api.buttondown.com/v1/emails?page=2",
            },
        }
    )
    client = ButtondownClient("secret", session=session)
    ids = [e["id"] for e in client.iter_emails({"status": ["sent"]})]
    assert ids == ["e1", "e2", "e3"]
    assert session.urls[0] == "https://api.buttondown.com/v1/emails?status=sent"
    assert session.headers[0]["Authorization"] == "Token secret"


def test_iter_attachments_pages():
    session = PagedSession(
        {
            "https://api.buttondown.com/v1/attachments?page=2": {"results": [{"id": "a2"}], "next": None},
            "https://api.buttondown.com/v1/attachments": {
                "results": [{"id": "a1"}],
                "next": "https://api.buttondown.com/v1/attachments?page=2",
            },
        }
    )
    client = ButtondownClient("k", session=session)
    assert [a["id"] for a in client.iter_attachments()] == ["a1", "a2"]


def test_error_status_raises_buttondown_error():
    client = ButtondownClient("k", session=PagedSession({}))
    with pytest.raises(ButtondownError) as exc:
        client.fetch_email("missing")
    assert exc.value.status_code == 404
    assert "Not found." in str(exc.value)


def test_empty_results_page():
    session = PagedSession({"https://api.buttondown.com/v1/emails": {"results": [], "next": None}})
    assert ButtondownClient("k", session=session).fetch_all_emails() == []


def test_fetch_attachment_by_id():
    session = PagedSession({"https://api.buttondown.com/v1/attachments/a1": {"id": "a1", "name": "f.pdf"}})
    assert ButtondownClient("k", session=session).fetch_attachment("a1")["name"] == "f.pdf"
