# posting_sweep/http_client.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Union
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import logging_bridge
from .errors import TransportFailure
from .models import FailureKind, FetchFailure

LOG = logging.getLogger(__name__)

FetchResult = Union[requests.Response, FetchFailure]

_REDIRECT_CODES = (301, 302)
_URL_ERRORS = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
    requests.exceptions.URLRequired,
)


class HttpClient:
    """
    Shared HTTP client for search pages and detail pages.

    fetch() follows at most ONE redirect hop itself (requests' own redirect
    handling is disabled). Malformed URLs come back as FetchFailure; any other
    requests error is raised as TransportFailure for the caller to handle.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        user_agent: str = "PostingSweep/0.1 (+https://example.invalid)",
        pool_maxsize: int = 50,
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

        retry = Retry(
            total=3,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset(["GET", "HEAD"]),
            redirect=0,
            raise_on_status=False,
            raise_on_redirect=False,
        )
        # One connection per in-flight detail fetch
        adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=max(1, pool_maxsize))
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def fetch(self, url: str, params: Mapping[str, Any] | None = None) -> FetchResult:
        """
        GET `url` (with optional query params), following a single 301/302 hop.

        Returns the final requests.Response, or a FetchFailure for malformed URLs,
        HTTP error statuses (>= 400), and redirects without a Location header.
        """
        resp = self._get(url, params)
        if isinstance(resp, FetchFailure):
            return resp

        if resp.status_code in _REDIRECT_CODES:
            location = (resp.headers.get("Location") or "").strip()
            if not location:
                return FetchFailure(
                    url=resp.url or url,
                    kind=FailureKind.HTTP_STATUS,
                    detail="redirect without Location",
                    status_code=resp.status_code,
                )
            target = urljoin(resp.url or url, location)
            LOG.debug("Following %s redirect %s -> %s", resp.status_code, resp.url, target)
            resp = self._get(target, None)
            if isinstance(resp, FetchFailure):
                return resp

        if resp.status_code >= 400:
            return FetchFailure(
                url=resp.url or url,
                kind=FailureKind.HTTP_STATUS,
                detail=f"HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)

    # ---- internals ----

    def _get(self, url: str, params: Mapping[str, Any] | None) -> requests.Response | FetchFailure:
        LOG.debug("GET %s params=%s", url, dict(params or {}))
        try:
            return self.session.get(url, params=params, timeout=self.timeout, allow_redirects=False)
        except _URL_ERRORS as e:
            logging_bridge.error({
                "component": "posting_sweep.http_client",
                "op": "invalid_url",
                "url": url,
                "error": repr(e),
            })
            return FetchFailure(url=url, kind=FailureKind.INVALID_URL, detail=str(e))
        except requests.exceptions.RequestException as e:
            # timeouts, connection resets, truncated or undecodable bodies
            raise TransportFailure(url, e) from e
