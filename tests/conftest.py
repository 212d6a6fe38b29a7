"""Shared pytest fixtures."""

import asyncio
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

import pytest

from core.llm import ModelChainExhausted
from core.roles import DEPTH_CONFIGS, ROLES, STYLE_PROMPTS
from core.types import (
    CallResult,
    Citation,
    Depth,
    ExecutionSession,
    ModelConfig,
    Role,
    RoleStatusBoard,
    SearchResults,
    Style,
)

POSITIVE_ANSWER = "结论：可行。建议：分阶段投入。"
NEGATIVE_ANSWER = "结论：不可行。建议：暂缓。"
INTENT_REVERSE = '{"mode": "reverse", "project": "光伏项目"}'

Answer = Union[str, Callable[[str, str, str], str]]


class FakeInvoker:
    """ModelInvoker stand-in with scripted answers per role id."""

    def __init__(
        self,
        answers: Optional[Dict[str, Answer]] = None,
        default: str = POSITIVE_ANSWER,
        fail: Iterable[str] = (),
        delays: Optional[Dict[str, float]] = None,
    ):
        self.answers = answers or {}
        self.default = default
        self.fail = set(fail)
        self.delays = delays or {}
        self.calls: List[tuple] = []

    async def invoke(self, role_id: str, system_prompt: str, user_message: str,
                     model_chain: Sequence[ModelConfig]) -> CallResult:
        self.calls.append((role_id, system_prompt, user_message, tuple(model_chain)))
        base = role_id.split(":")[0]
        delay = self.delays.get(role_id, self.delays.get(base, 0))
        if delay:
            await asyncio.sleep(delay)
        if role_id in self.fail or base in self.fail:
            raise ModelChainExhausted(role_id, ["all backends down"])

        answer = self.answers.get(role_id, self.answers.get(base, self.default))
        if callable(answer):
            answer = answer(role_id, system_prompt, user_message)
        model = model_chain[0] if model_chain else ModelConfig("fake", "fake-model")
        return CallResult(content=answer, model=model.model, provider=model.provider)

    def role_ids(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakeSearch:
    """SearchClient stand-in returning fixed citations."""

    def __init__(self, citations: Optional[List[Citation]] = None, error: Optional[Exception] = None):
        self.citations = citations if citations is not None else default_citations()
        self.error = error
        self.queries: List[str] = []

    async def search(self, query: str) -> SearchResults:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return SearchResults(tavily_results=list(self.citations))


def default_citations() -> List[Citation]:
    return [
        Citation("光伏政策解读", "https://www.gov.cn/zhengce/solar", "国家能源局发布分布式光伏管理办法", "tavily"),
        Citation("Solar market", "https://www.reuters.com/business/solar", "Global solar installations grew strongly", "tavily"),
        Citation("光伏行业观察", "https://36kr.com/p/solar", "工商业光伏装机量持续增长", "tavily"),
    ]


def make_role(role_id: str, models: int = 2, name: Optional[str] = None) -> Role:
    chain = tuple(ModelConfig("fake", f"{role_id}-model-{i}") for i in range(models))
    return Role(id=role_id, name=name or role_id, system_prompt=f"你是{role_id}", models=chain)


def make_session(raw_input: str = "我有13万资金想做光伏项目", depth: Depth = Depth.STANDARD,
                 roles: Sequence[Role] = ROLES) -> ExecutionSession:
    return ExecutionSession(
        raw_input=raw_input,
        depth=DEPTH_CONFIGS[depth],
        style_prompt=STYLE_PROMPTS[Style.BUSINESS],
        role_statuses=RoleStatusBoard([role.id for role in roles]),
    )


@pytest.fixture
def fake_invoker() -> FakeInvoker:
    return FakeInvoker(answers={"intent_analyst": INTENT_REVERSE})


@pytest.fixture
def fake_search() -> FakeSearch:
    return FakeSearch()


@pytest.fixture
def session() -> ExecutionSession:
    return make_session()
