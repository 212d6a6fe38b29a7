import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from core.degrade import guarded
from core.types import ExecutionSession, VerificationResult

logger = logging.getLogger(__name__)


class Firewall(ABC):
    """One verification checkpoint of the analysis pipeline."""

    number: int = 0
    name: str = ""

    @abstractmethod
    async def run(self, session: ExecutionSession) -> VerificationResult:
        """Check the session and return this stage's result."""
        pass

    def default(self) -> VerificationResult:
        """Neutral result reported when the stage itself fails."""
        return VerificationResult(self.number, self.name, passed=None, payload={"degraded": True})

    def result(self, passed: Optional[bool], **payload) -> VerificationResult:
        return VerificationResult(self.number, self.name, passed=passed, payload=payload)


class VerificationPipeline:
    """
    Ordered set of firewalls, each run independently.

    A stage that raises is replaced with its default result; the session
    always gets one result per stage run, appended in run order.
    """

    def __init__(self, firewalls: Iterable[Firewall]):
        self._firewalls: Dict[int, Firewall] = {}
        for firewall in firewalls:
            self._firewalls[firewall.number] = firewall

    @property
    def numbers(self) -> List[int]:
        return sorted(self._firewalls)

    def get(self, number: int) -> Firewall:
        return self._firewalls[number]

    async def _execute(self, firewall: Firewall, session: ExecutionSession) -> VerificationResult:
        return await guarded(
            f"firewall {firewall.number} ({firewall.name})",
            firewall.run,
            session,
            default_factory=firewall.default,
        )

    async def run_stage(self, number: int, session: ExecutionSession) -> VerificationResult:
        result = await self._execute(self.get(number), session)
        session.verification_results.append(result)
        logger.info("Firewall %d %s: passed=%s", number, result.name, result.passed)
        return result

    async def run_sequence(self, numbers: Iterable[int], session: ExecutionSession) -> List[VerificationResult]:
        return [await self.run_stage(number, session) for number in numbers]

    async def run_concurrently(self, numbers: Iterable[int], session: ExecutionSession) -> List[VerificationResult]:
        """Run stages that do not depend on each other; results keep the given order."""
        numbers = list(numbers)
        results = await asyncio.gather(*(self._execute(self.get(n), session) for n in numbers))
        session.verification_results.extend(results)
        return list(results)

    def summary(self, session: ExecutionSession) -> Dict[str, Dict]:
        """Latest result per firewall, keyed firewall1..firewall5."""
        latest: Dict[int, VerificationResult] = {}
        for result in session.verification_results:
            latest[result.firewall] = result
        return {f"firewall{n}": latest[n].to_dict() for n in sorted(latest)}
