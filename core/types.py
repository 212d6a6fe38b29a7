from enum import Enum
from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
import time
import uuid


class AnalysisMode(Enum):
    FORWARD = "forward"  # Derive feasible directions from fixed resources
    REVERSE = "reverse"  # Assess feasibility of a stated project
    MIXED = "mixed"      # Run both and synthesize


class RoleState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class Depth(Enum):
    QUICK = "quick"
    STANDARD = "standard"
    DEEP = "deep"
    COMPREHENSIVE = "comprehensive"


class Style(Enum):
    FORMAL = "formal"
    CASUAL = "casual"
    TECHNICAL = "technical"
    BUSINESS = "business"


@dataclass(frozen=True)
class Provider:
    """An OpenAI-compatible (or Anthropic) model backend."""
    name: str
    base_url: str
    api_key_env: str
    sdk: str = "openai"


@dataclass(frozen=True)
class ModelConfig:
    """One entry of a role's model chain."""
    provider: str
    model: str
    label: str = ""

    @property
    def display_name(self) -> str:
        return self.label or f"{self.provider}/{self.model}"


@dataclass(frozen=True)
class Role:
    """A named analytical persona with a fixed prompt and an ordered model chain."""
    id: str
    name: str
    system_prompt: str
    models: Tuple[ModelConfig, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "models": [m.display_name for m in self.models],
        }


@dataclass(frozen=True)
class DepthConfig:
    """Preset trading completeness for latency."""
    name: str
    max_search_results: int
    max_roles: int


@dataclass
class RoleStatus:
    state: RoleState = RoleState.PENDING
    content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.state.value, "content": self.content}


class RoleStatusBoard:
    """
    Role status map for one session.

    Every write replaces the slot for a single role id, so concurrently
    running role tasks never touch each other's entries.
    """

    def __init__(self, role_ids: Optional[List[str]] = None):
        self._slots: Dict[str, RoleStatus] = {
            role_id: RoleStatus() for role_id in role_ids or []
        }

    def set(self, role_id: str, state: RoleState, content: str = "") -> None:
        self._slots[role_id] = RoleStatus(state=state, content=content)

    def get(self, role_id: str) -> Optional[RoleStatus]:
        return self._slots.get(role_id)

    def skip_pending(self) -> None:
        """Mark every role that never started as skipped."""
        for role_id, status in list(self._slots.items()):
            if status.state == RoleState.PENDING:
                self._slots[role_id] = RoleStatus(RoleState.SKIPPED, "未参与本次分析")

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {role_id: status.to_dict() for role_id, status in self._slots.items()}


@dataclass
class Citation:
    """A search hit used for grounding."""
    title: str
    url: str
    snippet: str
    source: str = ""
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "source": self.source,
            "score": self.score,
        }


@dataclass
class SearchResults:
    """Grounding results from every configured search provider."""
    tavily_results: List[Citation] = field(default_factory=list)
    serper_results: List[Citation] = field(default_factory=list)

    @property
    def combined(self) -> List[Citation]:
        return self.tavily_results + self.serper_results

    @property
    def success(self) -> bool:
        return len(self.combined) > 0


@dataclass
class CallResult:
    """Outcome of one successful model invocation."""
    content: str
    model: str
    provider: str
    latency_ms: int = 0
    fallback_level: int = 0

    @property
    def fallback(self) -> bool:
        return self.fallback_level > 0


@dataclass
class CrossValidation:
    """Back-to-back result of two independent models on the same task."""
    final_conclusion: str
    consistent: bool
    confidence: str
    primary: str = ""
    secondary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finalConclusion": self.final_conclusion,
            "consistent": self.consistent,
            "confidence": self.confidence,
        }


@dataclass
class VerificationResult:
    """Result of one firewall; `passed` is None when the stage is neutral."""
    firewall: int
    name: str
    passed: Optional[bool]
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "firewall": self.firewall,
            "name": self.name,
            "passed": self.passed,
            **self.payload,
        }


@dataclass
class Feedback:
    """User feedback on a finished analysis."""
    rating: int
    adopted: bool = False
    comment: str = ""
    correction: str = ""
    role_feedback: Dict[str, bool] = field(default_factory=dict)  # role_id -> helpful
    session_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rating": self.rating,
            "adopted": self.adopted,
            "comment": self.comment,
            "correction": self.correction,
            "role_feedback": self.role_feedback,
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ExecutionSession:
    """Mutable state of one analysis request; discarded when the stream closes."""
    raw_input: str
    depth: DepthConfig
    style_prompt: str = ""
    mode: AnalysisMode = AnalysisMode.REVERSE
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    role_statuses: RoleStatusBoard = field(default_factory=RoleStatusBoard)
    verification_results: List[VerificationResult] = field(default_factory=list)
    cross_validation_results: List[Dict[str, Any]] = field(default_factory=list)
    corrected_roles: List[str] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)

    # Working state filled in as the pipeline advances
    search_results: SearchResults = field(default_factory=SearchResults)
    constraint_prompt: str = ""
    intent_project: str = ""
    aggregated_content: str = ""
    audit: Optional[Dict[str, Any]] = None
    mode_fallback: bool = False

    @property
    def elapsed_ms(self) -> int:
        return int((time.time() - self.start_time) * 1000)


@dataclass
class SessionRecord:
    """A finished analysis kept for the history endpoints."""
    session_id: str
    user_input: str
    mode: str
    result: Dict[str, Any]
    created_at: datetime = field(default_factory=datetime.now)

    def summary(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "input": self.user_input[:100],
            "mode": self.mode,
            "created_at": self.created_at.isoformat(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {**self.summary(), "input": self.user_input, "result": self.result}
