"""HTTP client for the upstream AI processing service (transcription, Q&A)."""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from qudemo_jobs.config import Settings
from qudemo_jobs.jobs.errors import (
    UpstreamMalformedResponse,
    UpstreamRejected,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

_UNAVAILABLE_STATUSES = {502, 503, 504}


class ProcessingClient:
    """Thin async wrapper around the processing service's REST API.

    Error mapping:
      - connection errors and 502/503/504 -> UpstreamUnavailable
      - request timeouts -> httpx.TimeoutException (left retryable)
      - other 4xx -> UpstreamRejected (message from the body's ``detail``)
      - empty or non-JSON body -> UpstreamMalformedResponse
      - other 5xx -> httpx.HTTPStatusError (left retryable)
    """

    def __init__(
        self,
        base_url: str,
        health_attempts: int = 3,
        health_interval: float = 2.0,
        health_timeout: float = 15.0,
        video_timeout: float = 300.0,
        qa_timeout: float = 60.0,
        memory_timeout: float = 5.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.health_attempts = max(1, health_attempts)
        self.health_interval = health_interval
        self.health_timeout = health_timeout
        self.video_timeout = video_timeout
        self.qa_timeout = qa_timeout
        self.memory_timeout = memory_timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProcessingClient":
        return cls(
            base_url=settings.python_api_base_url,
            health_attempts=settings.python_api_health_attempts,
            health_interval=settings.python_api_health_interval_ms / 1000,
            health_timeout=settings.python_api_health_timeout_ms / 1000,
            video_timeout=settings.python_api_video_timeout_ms / 1000,
            qa_timeout=settings.python_api_qa_timeout_ms / 1000,
            memory_timeout=settings.python_api_memory_timeout_ms / 1000,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check_health(self) -> None:
        """Probe ``/health``, retrying a few times before giving up."""
        last_error: Optional[Exception] = None
        for attempt in range(1, self.health_attempts + 1):
            try:
                response = await self._client.get("/health", timeout=self.health_timeout)
                response.raise_for_status()
                return
            except httpx.HTTPError as e:
                last_error = e
                logger.warning(
                    "Processing service health check failed (attempt %d/%d): %s",
                    attempt, self.health_attempts, e,
                )
                if attempt < self.health_attempts:
                    await asyncio.sleep(self.health_interval)

        raise UpstreamUnavailable(
            f"Processing service is not available after {self.health_attempts} attempts: {last_error}"
        )

    async def process_video(
        self,
        company_name: str,
        video_url: str,
        source: Optional[str] = None,
        meeting_link: Optional[str] = None,
        build_index: Optional[bool] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "video_url": video_url,
            "company_name": company_name,
            "source": source,
            "meeting_link": meeting_link,
        }
        if build_index is not None:
            payload["build_index"] = build_index

        return await self._post(
            f"/process-video/{company_name}", payload, timeout=self.video_timeout
        )

    async def ask_question(self, question: str, company_name: str) -> Dict[str, Any]:
        return await self._post(
            "/ask-question",
            {"question": question, "company_name": company_name},
            timeout=self.qa_timeout,
        )

    async def memory_status(self) -> Dict[str, Any]:
        response = await self._client.get("/memory-status", timeout=self.memory_timeout)
        response.raise_for_status()
        return response.json()

    async def _post(self, path: str, payload: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        try:
            response = await self._client.post(path, json=payload, timeout=timeout)
        except httpx.TimeoutException:
            raise
        except httpx.TransportError as e:
            raise UpstreamUnavailable(f"Processing service is not available: {e}") from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            if response.status_code in _UNAVAILABLE_STATUSES:
                raise UpstreamUnavailable(
                    f"Processing service is not available: HTTP {response.status_code} {detail}"
                )
            if response.status_code < 500:
                raise UpstreamRejected(detail, status_code=response.status_code)
            response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamMalformedResponse("No response data from processing service") from e
        if not data or not isinstance(data, dict):
            raise UpstreamMalformedResponse("No response data from processing service")
        return data


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return response.reason_phrase
