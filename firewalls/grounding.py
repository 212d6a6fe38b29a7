"""Search-backed firewalls: pre-fill search and triangulation."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from core.types import Citation, ExecutionSession, VerificationResult
from core.utils import extract_domain

from .base import Firewall

MAX_TRIANGULATION_SOURCES = 3


@dataclass
class DataPoint:
    claim: str
    sources: List[Citation] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return len(self.sources) >= 2

    @property
    def confidence(self) -> str:
        if len(self.sources) >= 3:
            return "A"
        if len(self.sources) >= 2:
            return "B"
        return "C"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claim": self.claim,
            "verified": self.verified,
            "confidence": self.confidence,
            "sources": [{"title": s.title, "url": s.url, "source": s.source} for s in self.sources],
        }


class Triangulator:
    """A claim counts as verified once two independent domains back it."""

    def __init__(self, search_client: Any):
        self.search_client = search_client

    async def triangulate(self, claims: List[str], context: str) -> List[DataPoint]:
        results = await self.search_client.search(context)
        evidence = self._independent_sources(results.combined)
        return [DataPoint(claim=claim, sources=list(evidence)) for claim in claims]

    @staticmethod
    def _independent_sources(hits: List[Citation]) -> List[Citation]:
        seen = set()
        sources = []
        for hit in hits:
            domain = extract_domain(hit.url)
            if not domain or domain in seen:
                continue
            seen.add(domain)
            sources.append(hit)
            if len(sources) == MAX_TRIANGULATION_SOURCES:
                break
        return sources


class PrefillSearchFirewall(Firewall):
    """Retrieves grounding results for the raw question before any role runs."""

    number = 1
    name = "预填充搜索"

    def __init__(self, search_client: Any):
        self.search_client = search_client

    async def run(self, session: ExecutionSession) -> VerificationResult:
        session.search_results = await self.search_client.search(session.raw_input)
        combined = session.search_results.combined
        return self.result(
            len(combined) > 0,
            resultCount=len(combined),
            tavilyCount=len(session.search_results.tavily_results),
            serperCount=len(session.search_results.serper_results),
        )

    def default(self) -> VerificationResult:
        return self.result(False, resultCount=0, degraded=True)


class TriangulationFirewall(Firewall):
    number = 2
    name = "三角验证"

    def __init__(self, triangulator: Triangulator):
        self.triangulator = triangulator

    async def run(self, session: ExecutionSession) -> VerificationResult:
        points = await self.triangulator.triangulate([session.raw_input], session.raw_input)
        if not points:
            return self.default()
        point = points[0]
        return self.result(
            point.verified,
            verified=point.verified,
            confidence=point.confidence,
            sources=point.to_dict()["sources"],
        )

    def default(self) -> VerificationResult:
        return self.result(False, verified=False, confidence="C", sources=[])
