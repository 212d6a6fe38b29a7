"""
Dual-model back-to-back verification.

Two independent backends answer the same task without seeing each other;
their verdicts are compared and the disagreement is surfaced rather than
resolved silently.
"""

import asyncio
from typing import Any, Sequence

from core.types import CrossValidation, ExecutionSession, ModelConfig, VerificationResult
from core.utils import extract_conclusion, stance

from .base import Firewall

DISAGREEMENT_NOTE = "两个模型结论不一致，需要人工裁决"


def verdict_of(content: str):
    return stance(extract_conclusion(content) or content)


async def cross_validate(
    invoker: Any,
    user_message: str,
    system_prompt: str,
    primary_models: Sequence[ModelConfig],
    secondary_models: Sequence[ModelConfig],
    role_id: str = "cross_validate",
) -> CrossValidation:
    """
    Run the task on two model chains concurrently and compare verdicts.

    Raises whatever the invoker raises when either side cannot answer.
    """
    primary, secondary = await asyncio.gather(
        invoker.invoke(f"{role_id}:primary", system_prompt, user_message, primary_models),
        invoker.invoke(f"{role_id}:secondary", system_prompt, user_message, secondary_models),
    )

    consistent = verdict_of(primary.content) == verdict_of(secondary.content)
    if consistent:
        return CrossValidation(
            final_conclusion=primary.content,
            consistent=True,
            confidence="A",
            primary=primary.content,
            secondary=secondary.content,
        )

    final = (
        f"{primary.content}\n\n---\n\n⚠️ {DISAGREEMENT_NOTE}\n\n"
        f"**对照模型（{secondary.provider}/{secondary.model}）观点：**\n\n{secondary.content}"
    )
    return CrossValidation(
        final_conclusion=final,
        consistent=False,
        confidence="B",
        primary=primary.content,
        secondary=secondary.content,
    )


class DualModelFirewall(Firewall):
    """Aggregates the per-role cross-validation results of a session."""

    number = 3
    name = "双模型背对背"

    async def run(self, session: ExecutionSession) -> VerificationResult:
        results = list(session.cross_validation_results)
        if not results:
            return self.result(None, results=[])
        return self.result(all(r["consistent"] for r in results), results=results)
