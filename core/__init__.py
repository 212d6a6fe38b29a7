from .types import (
    AnalysisMode,
    RoleState,
    Depth,
    Style,
    Provider,
    ModelConfig,
    Role,
    DepthConfig,
    RoleStatus,
    RoleStatusBoard,
    Citation,
    SearchResults,
    CallResult,
    CrossValidation,
    VerificationResult,
    Feedback,
    ExecutionSession,
    SessionRecord,
)
from .degrade import guarded, guarded_sync
from .events import StreamEmitter, StreamEvent
from .progress import ProgressTracker, ProgressStep
from .llm import ModelInvoker, ModelCallError, ModelChainExhausted, create_llm_client

__all__ = [
    "AnalysisMode",
    "RoleState",
    "Depth",
    "Style",
    "Provider",
    "ModelConfig",
    "Role",
    "DepthConfig",
    "RoleStatus",
    "RoleStatusBoard",
    "Citation",
    "SearchResults",
    "CallResult",
    "CrossValidation",
    "VerificationResult",
    "Feedback",
    "ExecutionSession",
    "SessionRecord",
    "guarded",
    "guarded_sync",
    "StreamEmitter",
    "StreamEvent",
    "ProgressTracker",
    "ProgressStep",
    "ModelInvoker",
    "ModelCallError",
    "ModelChainExhausted",
    "create_llm_client",
]
