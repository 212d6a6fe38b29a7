"""
Real-time correction: checks a role's answer right after it is produced
and rewrites statements that break the user's budget.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from core.types import ExecutionSession, VerificationResult
from core.utils import extract_numbers

from .base import Firewall
from .constraints import INVESTMENT_PATTERN, ConstraintLimits

IMPLAUSIBLE_NUMBER = 100_000_000
PERIOD_PATTERN = re.compile(r"(\d+)\s*(个?月|年)")


@dataclass
class CorrectionResult:
    issues: List[Dict[str, str]] = field(default_factory=list)
    corrections: List[Dict[str, str]] = field(default_factory=list)
    corrected_content: str = ""

    @property
    def verified(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issues": self.issues,
            "corrections": self.corrections,
            "correctedContent": self.corrected_content,
            "verified": self.verified,
        }


def correct(content: str, limits: ConstraintLimits) -> CorrectionResult:
    issues = []
    corrections = []
    numbers = re.findall(r"\d+\.?\d*", content)

    for value in extract_numbers(content):
        if value > IMPLAUSIBLE_NUMBER:
            issues.append({
                "type": "data_conflict",
                "description": f"数字 {value:g} 可能过大，请核实",
            })

    if "万" in content and "投资" in content:
        match = INVESTMENT_PATTERN.search(content)
        if match and float(match.group(1)) > limits.max_investment_wan:
            issues.append({
                "type": "constraint_violation",
                "description": f"投资金额 {match.group(1)}万 超过用户预算上限 {limits.max_investment_wan:g}万",
            })
            corrections.append({
                "original": match.group(0),
                "corrected": f"投资{limits.max_investment_wan:g}万（已修正为预算上限）",
                "reason": "超过用户预算约束",
            })

    if "回本" in content or "ROI" in content:
        match = PERIOD_PATTERN.search(content)
        if match:
            months = int(match.group(1)) * (12 if "年" in match.group(2) else 1)
            if months > limits.max_roi_months:
                issues.append({
                    "type": "constraint_violation",
                    "description": f"回本周期 {match.group(0)} 超过用户要求的{limits.max_roi_months}个月",
                })

    if "来源" not in content and "数据" not in content and len(numbers) > 3:
        issues.append({"type": "missing_source", "description": "包含多个数据但未标注来源"})

    corrected = content
    for c in corrections:
        corrected = corrected.replace(c["original"], c["corrected"], 1)

    return CorrectionResult(issues=issues, corrections=corrections, corrected_content=corrected)


class CorrectionFirewall(Firewall):
    """Pipeline view of the per-role corrections applied during mode execution."""

    number = 4
    name = "实时纠偏"

    async def run(self, session: ExecutionSession) -> VerificationResult:
        return self.result(
            True,
            correctedRoles=list(session.corrected_roles),
            correctionCount=len(session.corrected_roles),
        )
