"""Capital, payback and compliance constraints of the asking user."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from core.roles import USER_PROFILE, UserProfile

ILLEGAL_KEYWORDS = ("灰色", "违规", "逃税", "无证经营", "黑市", "非法")

INVESTMENT_PATTERN = re.compile(r"投资[^\d]*(\d+\.?\d*)\s*万")
PAYBACK_PATTERN = re.compile(r"(\d+)\s*个?月.*回本")


@dataclass(frozen=True)
class ConstraintLimits:
    max_investment: int = USER_PROFILE.max_investment  # yuan
    max_roi_months: int = USER_PROFILE.max_roi_months
    monthly_reserve: int = USER_PROFILE.monthly_reserve

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ConstraintLimits":
        return cls(
            max_investment=profile.max_investment,
            max_roi_months=profile.max_roi_months,
            monthly_reserve=profile.monthly_reserve,
        )

    @property
    def max_investment_wan(self) -> float:
        return self.max_investment / 10000


@dataclass
class PreCheckResult:
    passed: bool
    violations: List[str] = field(default_factory=list)
    constraint_prompt: str = ""
    should_regenerate: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "violations": self.violations,
            "shouldRegenerate": self.should_regenerate,
        }


class PreConstraintValidator:
    """Screens the raw question before any role runs."""

    def __init__(self, profile: UserProfile = USER_PROFILE):
        self.profile = profile
        self.limits = ConstraintLimits.from_profile(profile)

    def validate(self, user_input: str) -> PreCheckResult:
        violations = []
        should_regenerate = False

        for keyword in ILLEGAL_KEYWORDS:
            if keyword in user_input:
                violations.append(f"检测到不合规关键词: {keyword}")
                should_regenerate = True

        budget_match = re.search(r"(\d+\.?\d*)\s*万", user_input)
        if budget_match and float(budget_match.group(1)) * 10000 > self.limits.max_investment:
            violations.append(
                f"预算{budget_match.group(1)}万超过可用资金{self.limits.max_investment_wan:g}万"
            )

        roi_match = PAYBACK_PATTERN.search(user_input)
        if roi_match and int(roi_match.group(1)) > self.limits.max_roi_months:
            violations.append(
                f"要求回本周期{roi_match.group(1)}个月超过限制{self.limits.max_roi_months}个月"
            )

        return PreCheckResult(
            passed=not violations,
            violations=violations,
            constraint_prompt=self._constraint_prompt(violations) if violations else "",
            should_regenerate=should_regenerate,
        )

    def _constraint_prompt(self, violations: List[str]) -> str:
        p = self.profile
        detected = "\n".join(f"- {v}" for v in violations)
        return f"""【⚠️ 重要约束提醒 - 必须遵守】

1. 资金约束：总资金{p.max_investment}元（现金{p.cash}元，贷款{p.loan}元），每月预留{p.monthly_reserve}元；任何投资建议不得超过{p.max_investment // 10000}万元
2. 时间约束：回本周期不得超过{p.max_roi_months}个月，超过必须明确标注"不推荐"
3. 合规约束：所有建议必须100%合法合规，存在合规风险必须明确警告
4. 地域约束：项目应能在{"、".join(p.locations)}开展

已检测到以下问题：
{detected}

如果问题严重，明确告知不可行；如果可以调整，提供符合约束的替代方案；结论中说明是否满足约束条件。"""


def constraint_satisfaction(report: str, limits: ConstraintLimits) -> Dict[str, Any]:
    """Score the investment and payback statements of a report against the limits."""
    details: Dict[str, Dict[str, Any]] = {}

    investment_match = INVESTMENT_PATTERN.search(report)
    if investment_match:
        investment = float(investment_match.group(1)) * 10000
        details["投资上限"] = {
            "satisfied": investment <= limits.max_investment,
            "value": f"{investment_match.group(1)}万",
            "limit": f"{limits.max_investment_wan:g}万",
        }

    roi_match = PAYBACK_PATTERN.search(report)
    if roi_match:
        months = int(roi_match.group(1))
        details["回本周期"] = {
            "satisfied": months <= limits.max_roi_months,
            "value": f"{months}个月",
            "limit": f"{limits.max_roi_months}个月",
        }

    satisfied = sum(1 for d in details.values() if d["satisfied"])
    score = satisfied / len(details) * 100 if details else 100
    return {"score": round(score), "details": details}
