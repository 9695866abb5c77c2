"""
Low-level HTTP helpers shared by the sources
"""
import logging
from typing import Any, Dict, Optional

import requests

from lavasrc.exceptions import SourceError

_log = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
}


def new_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(DEFAULT_HEADERS)
    return session


def fetch_json(session: requests.Session,
               url: str,
               *,
               params: Optional[Dict] = None,
               headers: Optional[Dict] = None,
               timeout: float = 10) -> Optional[Any]:
    """
    GET → parsed JSON.
    404 is "nothing there" and returns ``None``; any other failure raises
    ``SourceError``.
    """
    try:
        res = session.get(url, params=params or {}, headers=headers or {}, timeout=timeout)
        if res.status_code == 404:
            return None
        res.raise_for_status()
        return res.json()
    except requests.exceptions.RequestException as exc:
        _log.warning("GET %s failed: %s", url, exc)
        raise SourceError(f"Request to {url} failed: {exc}") from exc
    except ValueError as exc:
        raise SourceError(f"Invalid JSON from {url}") from exc


def fetch_text(session: requests.Session,
               url: str,
               *,
               headers: Optional[Dict] = None,
               timeout: float = 10) -> str:
    try:
        res = session.get(url, headers=headers or {}, timeout=timeout)
        res.raise_for_status()
        return res.text
    except requests.exceptions.RequestException as exc:
        _log.warning("GET %s failed: %s", url, exc)
        raise SourceError(f"Request to {url} failed: {exc}") from exc


def resolve_redirect(session: requests.Session,
                     url: str,
                     *,
                     timeout: float = 10) -> Optional[str]:
    """HEAD without following redirects; return the ``Location`` of a 3xx."""
    try:
        res = session.head(url, allow_redirects=False, timeout=timeout)
    except requests.exceptions.RequestException as exc:
        raise SourceError(f"Request to {url} failed: {exc}") from exc
    if res.status_code in (301, 302, 303, 307, 308):
        return res.headers.get("Location")
    return None
