import pytest

from jobtracker.errors import JobFailed, JobKindMismatch, JobNotFound, PollTimeout
from jobtracker.schemas.job import (
    ImageGenerationInput,
    ImageGenerationOutput,
    JobErrorDetail,
    MatchmakingInput,
    MatchmakingOutput,
)
from jobtracker.services.poller import Poller


class _FakeTime:
    """Stands in for asyncio.sleep + time.monotonic; runs hooks on each sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
        self.hooks: dict[int, object] = {}

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        hook = self.hooks.get(len(self.sleeps))
        if hook is not None:
            await hook()


@pytest.mark.anyio
async def test_matchmaking_poller_stops_once_game_id_is_assigned(memory_queue):
    job = await memory_queue.create_task("u2", MatchmakingInput())
    fake = _FakeTime()

    async def worker_claims():
        await memory_queue.advance(job.id, "processing")

    async def worker_completes():
        await memory_queue.advance(job.id, "completed", output=MatchmakingOutput(game_id=42, opponent="u3"))

    fake.hooks = {2: worker_claims, 4: worker_completes}
    calls = []

    async def fetch(job_id):
        calls.append(job_id)
        return await memory_queue.get_task(job_id)

    poller = Poller(fetch, interval=1.0, timeout=60.0, sleep=fake.sleep, clock=fake.clock)
    game_id = await poller.wait_for_match(job.id)

    assert game_id == 42
    # polls at t=0..4; the fifth read sees the game id and polling stops
    assert len(calls) == 5
    assert fake.sleeps == [1.0, 1.0, 1.0, 1.0]


@pytest.mark.anyio
async def test_wait_for_output_returns_completed_output(memory_queue):
    job = await memory_queue.create_task("u1", ImageGenerationInput(prompt="a cat riding a bike"))
    await memory_queue.advance(job.id, "processing")
    await memory_queue.advance(job.id, "completed", output=ImageGenerationOutput(image_urls=["https://x/1.png"]))

    fake = _FakeTime()
    output = await Poller(memory_queue.get_task, sleep=fake.sleep, clock=fake.clock).wait_for_output(job.id)

    assert output.image_urls == ["https://x/1.png"]
    assert fake.sleeps == []


@pytest.mark.anyio
async def test_failed_job_surfaces_reason_and_stops(memory_queue):
    job = await memory_queue.create_task("u1", ImageGenerationInput(prompt="p"))
    await memory_queue.advance(job.id, "failed", error=JobErrorDetail(reason="prompt rejected", code="moderation"))

    fake = _FakeTime()
    with pytest.raises(JobFailed) as excinfo:
        await Poller(memory_queue.get_task, sleep=fake.sleep, clock=fake.clock).wait_for_output(job.id)

    assert excinfo.value.reason == "prompt rejected"
    assert excinfo.value.code == "moderation"
    assert fake.sleeps == []


@pytest.mark.anyio
async def test_failed_matchmaking_job_stops_match_wait(memory_queue):
    job = await memory_queue.create_task("u1", MatchmakingInput())
    await memory_queue.advance(job.id, "failed", error=JobErrorDetail(reason="left queue", code="cancelled"))

    fake = _FakeTime()
    with pytest.raises(JobFailed):
        await Poller(memory_queue.get_task, sleep=fake.sleep, clock=fake.clock).wait_for_match(job.id)


@pytest.mark.anyio
async def test_unknown_job_is_permanent_failure():
    calls = []

    async def fetch(job_id):
        calls.append(job_id)
        raise JobNotFound(job_id)

    fake = _FakeTime()
    with pytest.raises(JobNotFound):
        await Poller(fetch, sleep=fake.sleep, clock=fake.clock).poll("unknown-id")

    assert calls == ["unknown-id"]
    assert fake.sleeps == []


@pytest.mark.anyio
async def test_poll_gives_up_after_timeout(memory_queue):
    job = await memory_queue.create_task("u1", MatchmakingInput())
    fake = _FakeTime()

    with pytest.raises(PollTimeout) as excinfo:
        await Poller(memory_queue.get_task, interval=1.0, timeout=5.0, sleep=fake.sleep, clock=fake.clock).poll(job.id)

    assert excinfo.value.attempts == 6
    assert fake.now <= 5.0
    # the job itself is untouched by giving up
    assert (await memory_queue.get_task(job.id)).status == "pending"


@pytest.mark.anyio
async def test_poll_gives_up_after_max_attempts(memory_queue):
    job = await memory_queue.create_task("u1", MatchmakingInput())
    fake = _FakeTime()

    with pytest.raises(PollTimeout) as excinfo:
        await Poller(memory_queue.get_task, max_attempts=3, sleep=fake.sleep, clock=fake.clock).poll(job.id)

    assert excinfo.value.attempts == 3
    assert len(fake.sleeps) == 2


@pytest.mark.anyio
async def test_polling_never_mutates_the_job(memory_queue):
    job = await memory_queue.create_task("u1", MatchmakingInput())
    fake = _FakeTime()

    with pytest.raises(PollTimeout):
        await Poller(memory_queue.get_task, max_attempts=5, sleep=fake.sleep, clock=fake.clock).poll(job.id)

    assert await memory_queue.get_task(job.id) == job


@pytest.mark.anyio
async def test_wait_for_match_on_image_job_fails_fast(memory_queue):
    job = await memory_queue.create_task("u1", ImageGenerationInput(prompt="p"))
    fake = _FakeTime()

    poller = Poller(memory_queue.get_task, interval=1.0, timeout=60.0, sleep=fake.sleep, clock=fake.clock)
    with pytest.raises(JobKindMismatch):
        await poller.wait_for_match(job.id)

    assert fake.sleeps == []
