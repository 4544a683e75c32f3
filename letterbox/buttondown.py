"""Buttondown API client.

Thin wrapper over the Buttondown REST API (``/v1/emails`` and
``/v1/attachments``) with token authentication, cursor-style pagination
via the ``next`` URL of each page, and retry handling delegated to
``letterbox.http.request_with_retries``.

Emails and attachments are returned as plain dicts mirroring the API
payload, e.g. an email has ``id``, ``subject``, ``body``, ``status``,
``publish_date``, ``creation_date``, ``modification_date``, ``slug``,
``description``, ``image``, ``canonical_url``, ``absolute_url``,
``email_type``, ``secondary_id``, ``metadata``, ``featured`` and
``attachments`` (a list of attachment ids).
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import urlencode

import requests

from . import config
from .errors import ButtondownError
from .http import request_with_retries

logger = logging.getLogger("letterbox.buttondown")


def build_query(params: Optional[Dict[str, Any]]) -> str:
    """Encode query params; list values become repeated keys, None is dropped."""
    if not params:
        return ""
    pairs = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            for v in value:
                pairs.append((key, str(v)))
        else:
            pairs.append((key, str(value)))
    return urlencode(pairs)


class ButtondownClient:
    def __init__(self, api_key: str, base_url: str = config.API_BASE_URL, session: requests.Session | None = None, page_delay: float = config.API_PAGE_DELAY, retries: int = config.API_RETRIES):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.page_delay = page_delay
        self.retries = retries

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": config.USER_AGENT,
        }

    def request(self, path: str) -> Any:
        """GET a path (relative to the base URL) or an absolute URL and return JSON."""
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        logger.debug("API request: %s", url)
        resp = request_with_retries(
            "GET",
            url,
            headers=self._headers(),
            timeout=(config.API_CONNECT_TIMEOUT, config.API_TIMEOUT),
            retries=self.retries,
            backoff=config.API_BACKOFF,
            session=self.session,
            network_delay=config.API_NETWORK_RETRY_DELAY,
        )
        if resp.status_code >= 400:
            raise ButtondownError(resp.status_code, resp.text)
        return resp.json()

    def fetch_emails_page(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = build_query(params)
        path = f"/emails?{query}" if query else "/emails"
        return self.request(path)

    def iter_emails(self, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """Yield every email across all pages, following ``next`` links."""
        page = self.fetch_emails_page(params)
        while True:
            for email in page.get("results") or []:
                yield email
            next_url = page.get("next")
            if not next_url:
                return
            time.sleep(self.page_delay)
            page = self.request(next_url)

    def fetch_email(self, email_id: str) -> Dict[str, Any]:
        return self.request(f"/emails/{email_id}")

    def iter_attachments(self) -> Iterator[Dict[str, Any]]:
        next_url: Optional[str] = "/attachments"
        while next_url:
            page = self.request(next_url)
            for attachment in page.get("results") or []:
                yield attachment
            next_url = page.get("next")
            if next_url:
                time.sleep(self.page_delay)

    def fetch_attachment(self, attachment_id: str) -> Dict[str, Any]:
        return self.request(f"/attachments/{attachment_id}")

    def fetch_all_emails(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return list(self.iter_emails(params))
