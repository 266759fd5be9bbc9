"""Thin HTTP seam around the Artifactory / JFrog Access REST API."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests

from .constants import PRODUCT_ID
from .errors import MalformedResponseError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


class ArtifactoryClient:
    """Sends authenticated requests for a single bearer credential.

    The underlying :class:`requests.Session` is shared between clients derived
    with :meth:`with_access_token`, so admin and delegated credentials reuse
    one connection pool.
    """

    def __init__(
        self,
        url: str,
        access_token: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        if not access_token:
            raise ValueError("empty access token not allowed")
        if not url:
            raise ValueError("empty url not allowed")
        self.url = url.rstrip("/")
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def with_access_token(self, access_token: str) -> "ArtifactoryClient":
        """Return a client for the same upstream using ``access_token``."""
        return ArtifactoryClient(
            self.url, access_token, session=self.session, timeout=self.timeout
        )

    def _headers(self, content_type: str) -> dict[str, str]:
        return {
            "User-Agent": PRODUCT_ID,
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": content_type,
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.url}{path}"
        logger.debug(f"{method} {url}")
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Request {method} {url} failed: {e}")
            raise UpstreamUnavailableError(f"{method} {url} failed: {e}") from e

    def get(self, path: str) -> requests.Response:
        return self._request(
            "GET", path, headers=self._headers("application/x-www-form-urlencoded")
        )

    def post_form(self, path: str, values: Mapping[str, str]) -> requests.Response:
        return self._request(
            "POST",
            path,
            data=dict(values),
            headers=self._headers("application/x-www-form-urlencoded"),
        )

    def post_json(self, path: str, payload: Mapping[str, Any]) -> requests.Response:
        return self._request(
            "POST", path, json=dict(payload), headers=self._headers("application/json")
        )

    def delete(self, path: str) -> requests.Response:
        return self._request(
            "DELETE", path, headers=self._headers("application/x-www-form-urlencoded")
        )


def error_message(resp: requests.Response) -> str:
    """Join the messages of an ``{"errors": [...]}`` body.

    Falls back to the raw body text when the response is not in that shape.
    """
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    errors = body.get("errors") if isinstance(body, dict) else None
    if not isinstance(errors, list):
        return resp.text
    return ", ".join(
        str(e.get("message", "")) for e in errors if isinstance(e, dict)
    )


def decode_json(resp: requests.Response, what: str) -> Any:
    """Decode a success body, raising :class:`MalformedResponseError`."""
    try:
        return resp.json()
    except ValueError as e:
        logger.error(f"Could not parse {what} response: {e}")
        raise MalformedResponseError(f"could not parse {what} response: {e}") from e
