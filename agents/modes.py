"""
Analysis mode strategies.

Each strategy drives a set of roles through a RoleExecutor and returns the
aggregated content. The dispatcher picks the strategy for the session's
mode and falls back from mixed to reverse when the mixed routine fails.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from core.roles import USER_PROFILE, UserProfile
from core.types import AnalysisMode, DepthConfig, ExecutionSession, Role

from .mixed import MixedModeResult, run_mixed_mode
from .role_executor import RoleExecutor

logger = logging.getLogger(__name__)

FORWARD_ROLES = (
    "chief_researcher",
    "market_analyst",
    "industry_analyst",
    "financial_analyst",
    "risk_assessor",
    "innovation_advisor",
    "execution_planner",
)
FORWARD_DUAL_MODEL_ROLES = ("financial_analyst",)

REVERSE_EXCLUDED_ROLES = ("intent_analyst", "copilot", "quality_verifier")
DUAL_MODEL_ROLES = ("financial_analyst", "decision_advisor")


@dataclass
class ModeOutcome:
    mode: AnalysisMode
    content: str = ""
    final_decision: str = ""
    mixed_result: Optional[MixedModeResult] = None


class ModeStrategy(ABC):
    mode: AnalysisMode

    @abstractmethod
    async def run(self, session: ExecutionSession, executor: RoleExecutor) -> ModeOutcome:
        pass


class ForwardMode(ModeStrategy):
    """Seven roles in a fixed order, each seeing the user's fixed resources first."""

    mode = AnalysisMode.FORWARD

    def __init__(self, roles: Mapping[str, Role], profile: UserProfile = USER_PROFILE):
        self.roles = roles
        self.profile = profile

    def prompt(self, user_input: str) -> str:
        return (
            "【正推分析】\n用户现有条件：\n"
            f"{self.profile.resource_lines()}\n\n"
            f"用户问题：{user_input}\n\n"
            "请从现有条件出发，分析可行的商业方向。"
        )

    async def run(self, session: ExecutionSession, executor: RoleExecutor) -> ModeOutcome:
        sections = []
        for role_id in FORWARD_ROLES:
            role = self.roles.get(role_id)
            if role is None:
                continue
            content = await executor.execute(
                role_id,
                role.system_prompt + "\n\n" + self.prompt(session.raw_input),
                session.raw_input,
                use_dual_model=role_id in FORWARD_DUAL_MODEL_ROLES,
            )
            if content:
                sections.append(f"## {role.name}\n\n{content}")
        return ModeOutcome(self.mode, content="\n\n".join(sections))


def select_reverse_roles(roles: Sequence[Role], depth: DepthConfig) -> List[Role]:
    selected = [role for role in roles if role.id not in REVERSE_EXCLUDED_ROLES]
    return selected[: depth.max_roles]


class ReverseMode(ModeStrategy):
    """
    All analysis roles at once.

    Contributions are joined in the order the roles finish, so the result
    must not depend on which role answered first.
    """

    mode = AnalysisMode.REVERSE

    def __init__(self, roles: Sequence[Role]):
        self.roles = list(roles)

    async def run(self, session: ExecutionSession, executor: RoleExecutor) -> ModeOutcome:
        settled: List[str] = []

        async def run_role(role: Role) -> None:
            content = await executor.execute(
                role.id,
                role.system_prompt,
                session.raw_input,
                use_dual_model=role.id in DUAL_MODEL_ROLES,
            )
            if content:
                settled.append(content)

        await asyncio.gather(*(run_role(role) for role in select_reverse_roles(self.roles, session.depth)))
        return ModeOutcome(self.mode, content="\n\n".join(settled))


class MixedMode(ModeStrategy):
    mode = AnalysisMode.MIXED

    def __init__(self, roles: Mapping[str, Role]):
        self.roles = roles

    async def run(self, session: ExecutionSession, executor: RoleExecutor) -> ModeOutcome:
        async def execute_role(role_id: str, prompt: str, user_input: str) -> str:
            role = self.roles.get(role_id)
            if role is None:
                return ""
            return await executor.execute(
                role_id,
                role.system_prompt + "\n\n" + prompt,
                user_input,
                use_dual_model=role_id in DUAL_MODEL_ROLES,
            )

        result = await run_mixed_mode(session.raw_input, execute_role)
        return ModeOutcome(
            self.mode,
            content=result.synthesis,
            final_decision=result.synthesis,
            mixed_result=result,
        )


class ModeDispatcher:
    """Runs the strategy matching the session mode."""

    def __init__(
        self,
        strategies: Sequence[ModeStrategy],
        on_start: Optional[Callable[[AnalysisMode], None]] = None,
    ):
        self.strategies: Dict[AnalysisMode, ModeStrategy] = {s.mode: s for s in strategies}
        self.on_start = on_start

    @classmethod
    def default(cls, roles: Sequence[Role], **kwargs) -> "ModeDispatcher":
        by_id = {role.id: role for role in roles}
        return cls([ForwardMode(by_id), ReverseMode(roles), MixedMode(by_id)], **kwargs)

    def _started(self, mode: AnalysisMode) -> None:
        if self.on_start is not None:
            self.on_start(mode)

    async def dispatch(self, session: ExecutionSession, executor: RoleExecutor) -> ModeOutcome:
        if session.mode == AnalysisMode.MIXED:
            self._started(AnalysisMode.MIXED)
            try:
                return await self.strategies[AnalysisMode.MIXED].run(session, executor)
            except Exception as e:
                logger.warning("Mixed mode failed, falling back to reverse: %s", e)
                session.mode = AnalysisMode.REVERSE
                session.mode_fallback = True

        self._started(session.mode)
        return await self.strategies[session.mode].run(session, executor)
