from .credits import CodeRedemption, CreditTransaction, PromoCode, UserCredits
from .error_log import ErrorLog
from .media_asset import MediaAsset
from .project import Project
from .render_job import RENDER_ACTIVE_STATUSES, RenderJob
from .video_job import VIDEO_JOB_STATUSES, VideoJob

__all__ = [
    "CodeRedemption",
    "CreditTransaction",
    "ErrorLog",
    "MediaAsset",
    "Project",
    "PromoCode",
    "RENDER_ACTIVE_STATUSES",
    "RenderJob",
    "UserCredits",
    "VIDEO_JOB_STATUSES",
    "VideoJob",
]
