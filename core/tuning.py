"""
Prompt tuning learned from user feedback.

No model weights change: feedback is folded into preference hints that are
appended to role prompts.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .types import Feedback


@dataclass
class PromptTuning:
    risk_tolerance: float = 0.5
    profit_focus: float = 0.5
    time_preference: float = 0.5
    role_weights: Dict[str, float] = field(default_factory=dict)
    rule_weights: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_feedback(cls, history: Iterable[Feedback]) -> "PromptTuning":
        tuning = cls()
        for feedback in history:
            for role_id, helpful in feedback.role_feedback.items():
                weight = tuning.role_weights.get(role_id, 1.0)
                if helpful:
                    tuning.role_weights[role_id] = min(2.0, weight + 0.1)
                else:
                    tuning.role_weights[role_id] = max(0.5, weight - 0.1)

            comment = feedback.comment or ""
            if "风险" in comment:
                tuning.risk_tolerance = 0.8 if "高风险" in comment else 0.3
            if "利润" in comment:
                tuning.profit_focus = 0.8
            if "快速" in comment:
                tuning.time_preference = 0.8

            if feedback.correction:
                rule = feedback.correction[:50]
                tuning.rule_weights[rule] = min(1.0, tuning.rule_weights.get(rule, 0.5) + 0.2)
        return tuning

    def top_rules(self, limit: int = 3) -> List[str]:
        ranked = sorted(
            (item for item in self.rule_weights.items() if item[1] > 0.7),
            key=lambda item: item[1],
            reverse=True,
        )
        return [rule for rule, _ in ranked[:limit]]

    def apply(self, prompt: str, role_id: str) -> str:
        hints = []
        if self.risk_tolerance < 0.4:
            hints.append("【用户偏好】用户风险承受能力较低，请重点分析风险因素。")
        elif self.risk_tolerance > 0.6:
            hints.append("【用户偏好】用户风险承受能力较高，可以推荐高回报项目。")
        if self.profit_focus > 0.6:
            hints.append("【用户偏好】用户更关注利润，请重点分析盈利能力。")
        if self.time_preference > 0.6:
            hints.append("【用户偏好】用户偏好快速见效的项目，请重点分析短期收益。")

        weight = self.role_weights.get(role_id, 1.0)
        if weight < 0.7:
            hints.append("【注意】此角色历史准确率较低，请特别注意数据准确性。")
        elif weight > 1.3:
            hints.append("【注意】此角色历史表现优秀，继续保持。")

        rules = self.top_rules()
        if rules:
            lines = "\n".join(f"- {rule}（权重{self.rule_weights[rule] * 100:.0f}%）" for rule in rules)
            hints.append(f"【已学习的重要规则】\n{lines}")

        if not hints:
            return prompt
        return prompt + "\n\n" + "\n\n".join(hints)


def learning_report(history: Sequence[Feedback], top_roles: Optional[int] = None) -> Dict[str, Any]:
    """
    How well past answers landed, built from stored feedback.

    A rating of 4 or more counts as accurate. Role accuracy is the share of
    helpful votes per role, best first.
    """
    history = list(history)
    total = len(history)
    tuning = PromptTuning.from_feedback(history)

    votes: Dict[str, List[bool]] = {}
    by_date: Dict[str, List[bool]] = {}
    for feedback in history:
        for role_id, helpful in feedback.role_feedback.items():
            votes.setdefault(role_id, []).append(helpful)
        by_date.setdefault(feedback.created_at.date().isoformat(), []).append(feedback.rating >= 4)

    by_role = sorted(
        (
            {"roleId": role_id, "accuracy": sum(v) / len(v), "totalCases": len(v)}
            for role_id, v in votes.items()
        ),
        key=lambda item: (-item["accuracy"], item["roleId"]),
    )
    if top_roles is not None:
        by_role = by_role[:top_roles]

    return {
        "overall": {
            "totalFeedback": total,
            "averageRating": sum(f.rating for f in history) / total if total else 0.0,
            "adoptionRate": sum(1 for f in history if f.adopted) / total if total else 0.0,
            "accuracy": sum(1 for f in history if f.rating >= 4) / total if total else 0.0,
        },
        "byRole": by_role,
        "recentTrend": [
            {"date": date, "accuracy": sum(marks) / len(marks), "sampleSize": len(marks)}
            for date, marks in sorted(by_date.items())
        ],
        "rulesLearned": len(tuning.rule_weights),
        "casesCollected": total,
        "topRules": [
            {"rule": rule, "weight": tuning.rule_weights[rule]} for rule in tuning.top_rules()
        ],
    }
