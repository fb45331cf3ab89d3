"""
HTTP client for the upstream proxy's management API.
"""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from usage_monitor.core.config import normalize_base_url
from usage_monitor.core.errors import UpstreamError

logger = logging.getLogger(__name__)

USAGE_STATISTICS_KEY = "usage-statistics-enabled"


class CLIProxyClient:
    """Thin wrapper over the management endpoints; every failure surfaces as UpstreamError."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 15.0, transport: httpx.BaseTransport = None):
        self.base_url = normalize_base_url(base_url)
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _error_detail(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"]
        return None

    def _request(self, method: str, path: str, as_text: bool = False, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            with self._client() as http_client:
                response = http_client.request(method, url, headers=self._headers(), **kwargs)
                response.raise_for_status()
                return response.text if as_text else response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Upstream {method} {path} timed out after {self.timeout}s")
            raise UpstreamError(f"Upstream request timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = self._error_detail(e.response)
            logger.warning(f"Upstream {method} {path} returned {status}")
            raise UpstreamError(detail or f"Upstream returned HTTP {status}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.warning(f"Upstream {method} {path} failed: {e}")
            raise UpstreamError(f"Upstream request failed: {e}") from e
        except ValueError as e:
            raise UpstreamError("Upstream returned invalid JSON") from e

    def fetch_usage(self) -> Dict[str, Any]:
        payload = self._request("GET", "/usage")
        if not isinstance(payload, dict):
            raise UpstreamError("Upstream usage payload is not an object")
        return payload

    def get_usage_statistics_enabled(self) -> bool:
        payload = self._request("GET", f"/{USAGE_STATISTICS_KEY}")
        if not isinstance(payload, dict) or USAGE_STATISTICS_KEY not in payload:
            raise UpstreamError(f"Upstream response is missing '{USAGE_STATISTICS_KEY}'")
        return bool(payload[USAGE_STATISTICS_KEY])

    def set_usage_statistics_enabled(self, enabled: bool) -> bool:
        payload = self._request("PUT", f"/{USAGE_STATISTICS_KEY}", json={"value": bool(enabled)})
        if isinstance(payload, dict) and USAGE_STATISTICS_KEY in payload:
            return bool(payload[USAGE_STATISTICS_KEY])
        return bool(enabled)

    def fetch_logs(self, after: Optional[int] = None) -> Dict[str, Any]:
        """Proxy log lines newer than `after` (epoch seconds)."""
        params = {"after": after} if after is not None else None
        payload = self._request("GET", "/logs", params=params)
        if not isinstance(payload, dict):
            raise UpstreamError("Upstream logs payload is not an object")
        return payload

    def list_request_error_logs(self) -> List[Dict[str, Any]]:
        payload = self._request("GET", "/request-error-logs")
        files = payload.get("files") if isinstance(payload, dict) else None
        return [entry for entry in files or [] if isinstance(entry, dict) and entry.get("name")]

    def get_request_error_log(self, name: str) -> str:
        return self._request("GET", f"/request-error-logs/{quote(name, safe='')}", as_text=True)
