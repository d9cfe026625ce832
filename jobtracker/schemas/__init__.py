from .job import (
    GameSessionRead,
    ImageGenerationInput,
    ImageGenerationOutput,
    Job,
    JobAdvance,
    JobCreate,
    JobErrorDetail,
    JobInput,
    JobOutput,
    JobStatus,
    MatchmakingInput,
    MatchmakingJoin,
    MatchmakingOutput,
    MatchmakingRunResponse,
    TERMINAL_STATUSES,
)

__all__ = [
    "GameSessionRead",
    "ImageGenerationInput",
    "ImageGenerationOutput",
    "Job",
    "JobAdvance",
    "JobCreate",
    "JobErrorDetail",
    "JobInput",
    "JobOutput",
    "JobStatus",
    "MatchmakingInput",
    "MatchmakingJoin",
    "MatchmakingOutput",
    "MatchmakingRunResponse",
    "TERMINAL_STATUSES",
]
