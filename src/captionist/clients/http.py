from __future__ import annotations

from typing import Any, Sequence

import requests

from captionist.domain.captions import CaptionSegment, CaptionStyle
from captionist.domain.jobs import AccessorResponse
from captionist.exceptions import TransportError, UnavailableError
from captionist.utils.logging import get_logger

log = get_logger(__name__)

HEALTH_TIMEOUT_S = 5.0


class ApiClient:
    """
    requests-backed accessor for the export backend.

    Implements the status, submission, artifact and health accessors.
    Responses use the `{success, data, error}` envelope. Connection
    failures raise UnavailableError, other HTTP problems TransportError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self._timeout)
        url = self._url(endpoint)
        try:
            response = self._session.request(method, url, **kwargs)
        except requests.ConnectionError as exc:
            raise UnavailableError(f"Cannot reach {url}: {exc}") from exc
        except requests.RequestException as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc
        if not response.ok:
            log.warning("%s %s -> HTTP %s", method, url, response.status_code)
            raise TransportError(f"HTTP error! status: {response.status_code}")
        return response

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> AccessorResponse:
        response = self._send(method, endpoint, **kwargs)
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON from {endpoint}: {exc}") from exc
        return AccessorResponse.from_json(payload)

    def health_check(self) -> AccessorResponse:
        return self._request("GET", "/health", timeout=HEALTH_TIMEOUT_S)

    def get_export_status(self, job_id: str) -> AccessorResponse:
        return self._request("GET", f"/export/status/{job_id}")

    def submit_export(
        self,
        video_id: str,
        captions: Sequence[CaptionSegment],
        style: CaptionStyle,
        output_options: dict[str, Any],
    ) -> AccessorResponse:
        body = {
            "videoId": video_id,
            "captions": [c.to_payload() for c in captions],
            "style": style.to_payload(),
            "outputOptions": output_options,
        }
        return self._request("POST", "/export", json=body)

    def download_export(self, job_id: str) -> bytes:
        response = self._send("GET", f"/export/download/{job_id}")
        return response.content
