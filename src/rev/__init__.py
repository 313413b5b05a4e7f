from .models import ReadinessStatus, Tier
from .service import ReadinessEvaluator, is_ready_for_analysis, tier_for

__all__ = ["ReadinessStatus", "Tier", "ReadinessEvaluator", "is_ready_for_analysis", "tier_for"]
