from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod

import httpx

from jobtracker.config import Settings, settings
from jobtracker.schemas.job import ImageGenerationInput


logger = logging.getLogger("jobtracker.generation")


class GenerationError(Exception):
    pass


class ImageGenerator(ABC):
    @abstractmethod
    async def generate(self, request: ImageGenerationInput) -> list[str]:
        """Run one generation and return the resulting image URLs."""


class HttpImageGenerator(ImageGenerator):
    """Client for a Midjourney-style task API.

    The remote service is itself asynchronous: we submit a task, then poll its
    status endpoint until it reports completed or failed.
    """

    def __init__(
        self,
        cfg: Settings = settings,
        *,
        http: httpx.AsyncClient | None = None,
        poll_interval: float = 2.0,
    ) -> None:
        self._url = cfg.generation_api_url.rstrip("/")
        self._api_key = cfg.generation_api_key
        self._timeout = cfg.generation_timeout_seconds
        self._http = http
        self._poll_interval = poll_interval

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise GenerationError("GENERATION_API_KEY is not configured")
        return {"x-api-key": self._api_key, "Accept": "application/json"}

    async def generate(self, request: ImageGenerationInput) -> list[str]:
        if self._http is not None:
            return await self._generate(self._http, request)
        async with httpx.AsyncClient(timeout=self._timeout) as http:
            return await self._generate(http, request)

    async def _generate(self, http: httpx.AsyncClient, request: ImageGenerationInput) -> list[str]:
        headers = self._headers()
        r = await http.post(
            self._url,
            headers=headers,
            json={
                "model": "midjourney",
                "task_type": "imagine",
                "input": {
                    "prompt": request.prompt,
                    "aspect_ratio": request.aspect_ratio,
                    "process_mode": "fast",
                },
            },
        )
        if r.status_code >= 400:
            raise GenerationError(f"generation API error: HTTP {r.status_code}: {r.text[:500]}")

        remote_id = (r.json().get("data") or {}).get("task_id")
        if not remote_id:
            raise GenerationError("generation API response is missing a task id")
        logger.info("generation_submitted remote_task_id=%s", remote_id)

        deadline = time.monotonic() + self._timeout
        while True:
            r = await http.get(f"{self._url}/{remote_id}", headers=headers)
            if r.status_code >= 400:
                raise GenerationError(f"generation status error: HTTP {r.status_code}")

            data = r.json().get("data") or {}
            status = data.get("status")
            if status == "completed":
                urls = (data.get("output") or {}).get("image_urls") or []
                if not urls:
                    raise GenerationError("generation completed without image urls")
                return list(urls)
            if status == "failed":
                message = (data.get("error") or {}).get("message") or "generation failed"
                raise GenerationError(message)

            if time.monotonic() + self._poll_interval > deadline:
                raise GenerationError(f"generation timed out after {self._timeout:.0f}s")
            await asyncio.sleep(self._poll_interval)
