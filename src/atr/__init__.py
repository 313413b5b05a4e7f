from .cache import AnalysisCache
from .contracts import (
    AnalysisProvider,
    AnalysisRequest,
    AnalysisResult,
    KeyDetails,
    NotificationSink,
    SnapshotBundle,
    token_topic,
)
from .errors import AnalysisUnavailableError
from .heuristics import TokenScore, score_tokens
from .notifications import InMemoryNotificationHub
from .providers import ChatCompletionAnalysisProvider, UnconfiguredAnalysisProvider
from .service import AnalysisTrigger, TriggerOutcome

__all__ = [
    "AnalysisCache",
    "AnalysisProvider",
    "AnalysisRequest",
    "AnalysisResult",
    "KeyDetails",
    "NotificationSink",
    "SnapshotBundle",
    "token_topic",
    "AnalysisUnavailableError",
    "TokenScore",
    "score_tokens",
    "InMemoryNotificationHub",
    "ChatCompletionAnalysisProvider",
    "UnconfiguredAnalysisProvider",
    "AnalysisTrigger",
    "TriggerOutcome",
]
