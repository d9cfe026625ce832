from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator


JobStatus = Literal["pending", "processing", "completed", "failed"]
JobKind = Literal["image-generation", "matchmaking"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


class ImageGenerationInput(BaseModel):
    kind: Literal["image-generation"] = "image-generation"
    prompt: str = Field(..., min_length=1)
    aspect_ratio: str = "1:1"


class MatchmakingInput(BaseModel):
    kind: Literal["matchmaking"] = "matchmaking"


class ImageGenerationOutput(BaseModel):
    kind: Literal["image-generation"] = "image-generation"
    image_urls: list[str] = Field(..., min_length=1)


class MatchmakingOutput(BaseModel):
    kind: Literal["matchmaking"] = "matchmaking"
    game_id: int
    opponent: str | None = None


JobInput = Annotated[Union[ImageGenerationInput, MatchmakingInput], Field(discriminator="kind")]
JobOutput = Annotated[Union[ImageGenerationOutput, MatchmakingOutput], Field(discriminator="kind")]


class JobErrorDetail(BaseModel):
    reason: str
    code: str | None = None


class Job(BaseModel):
    """A tracked unit of asynchronous work.

    Instances are immutable snapshots; every change goes through a store update
    and yields a new snapshot.
    """

    id: str
    owner: str
    kind: JobKind

    status: JobStatus
    input: JobInput
    output: JobOutput | None = None
    error: JobErrorDetail | None = None

    version: int = 0

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        frozen = True

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is stored as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_invariants(self) -> "Job":
        if self.input.kind != self.kind:
            raise ValueError(f"input kind {self.input.kind!r} does not match job kind {self.kind!r}")
        if (self.output is not None) != (self.status == "completed"):
            raise ValueError("output must be set if and only if status is completed")
        if self.output is not None and self.output.kind != self.kind:
            raise ValueError(f"output kind {self.output.kind!r} does not match job kind {self.kind!r}")
        if (self.error is not None) != (self.status == "failed"):
            raise ValueError("error must be set if and only if status is failed")
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not precede created_at")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class JobCreate(BaseModel):
    owner: str = Field(..., min_length=1, max_length=255)
    input: JobInput


class JobAdvance(BaseModel):
    status: JobStatus
    output: JobOutput | None = None
    error: JobErrorDetail | None = None


class MatchmakingJoin(BaseModel):
    owner: str = Field(..., min_length=1, max_length=255)


class GameSessionRead(BaseModel):
    id: int
    player_one: str
    player_two: str

    class Config:
        from_attributes = True


class MatchmakingRunResponse(BaseModel):
    games: list[GameSessionRead] = Field(default_factory=list)
