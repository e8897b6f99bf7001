from .credits import (
    CreditsResponse,
    CreditTransactionOut,
    GrantCreditsRequest,
    RedeemRequest,
    RedeemResponse,
)
from .render import RenderJobList, RenderJobOut, RenderJobResponse
from .video_jobs import (
    ProcessResponse,
    RetryResponse,
    VideoJobCreate,
    VideoJobCreated,
    VideoJobList,
    VideoJobStatus,
)

__all__ = [
    "CreditsResponse",
    "CreditTransactionOut",
    "GrantCreditsRequest",
    "ProcessResponse",
    "RedeemRequest",
    "RedeemResponse",
    "RenderJobList",
    "RenderJobOut",
    "RenderJobResponse",
    "RetryResponse",
    "VideoJobCreate",
    "VideoJobCreated",
    "VideoJobList",
    "VideoJobStatus",
]
