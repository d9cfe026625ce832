from __future__ import annotations

from typing import Any

import httpx

from jobtracker.errors import JobNotFound
from jobtracker.schemas.job import Job, JobInput


class TaskApiClient:
    """Thin async client for the job API.

    ``get_task`` raises JobNotFound on 404 so it can serve as a Poller fetch.

    Usage:
        async with TaskApiClient("http://localhost:8000") as api:
            job = await api.create_task("u1", ImageGenerationInput(prompt="a cat"))
            output = await Poller(api.get_task).wait_for_output(job.id)
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        http: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "TaskApiClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def create_task(self, owner: str, input: JobInput) -> Job:
        r = await self._http.post(
            "/api/v1/tasks",
            json={"owner": owner, "input": input.model_dump(mode="json")},
        )
        r.raise_for_status()
        return Job.model_validate(r.json())

    async def get_task(self, job_id: str) -> Job:
        r = await self._http.get(f"/api/v1/tasks/{job_id}")
        if r.status_code == 404:
            raise JobNotFound(job_id)
        r.raise_for_status()
        return Job.model_validate(r.json())

    async def join_matchmaking(self, owner: str) -> Job:
        r = await self._http.post("/api/v1/matchmaking", json={"owner": owner})
        r.raise_for_status()
        return Job.model_validate(r.json())
