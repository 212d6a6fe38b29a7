from .role_executor import RoleExecutor
from .intent import Intent, DEFAULT_INTENT, parse_intent
from .modes import ForwardMode, ReverseMode, MixedMode, ModeDispatcher, ModeOutcome
from .supervisor import AnalysisRequest, AnalysisSupervisor, create_supervisor

__all__ = [
    "RoleExecutor",
    "Intent",
    "DEFAULT_INTENT",
    "parse_intent",
    "ForwardMode",
    "ReverseMode",
    "MixedMode",
    "ModeDispatcher",
    "ModeOutcome",
    "AnalysisRequest",
    "AnalysisSupervisor",
    "create_supervisor",
]
