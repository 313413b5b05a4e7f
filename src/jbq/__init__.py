from .jobs import JobQueue
from .models import ANALYZE_TOKEN, FETCH_TOKEN_DATA, Job, JobHandler
from .pipeline import register_token_pipeline

__all__ = ["ANALYZE_TOKEN", "FETCH_TOKEN_DATA", "Job", "JobHandler", "JobQueue", "register_token_pipeline"]
