from .models import IngestionBatchResult, IngestionPassResult, SourceOutcome
from .service import IngestionOrchestrator
from .sources import CandleSource, MetadataSource, SourceHandler, TickerSource

__all__ = [
    "IngestionBatchResult",
    "IngestionPassResult",
    "SourceOutcome",
    "IngestionOrchestrator",
    "CandleSource",
    "MetadataSource",
    "SourceHandler",
    "TickerSource",
]
