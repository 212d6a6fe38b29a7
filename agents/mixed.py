"""
Mixed-mode composite: forward and reverse analysis run side by side and are
then cross-checked against each other.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Sequence

from core.utils import extract_conclusion, extract_recommendation, jaccard, stance, tokenize

RoleCallback = Callable[[str, str, str], Awaitable[str]]

FORWARD_PATH = ("chief_researcher", "market_analyst", "industry_analyst", "financial_analyst")
REVERSE_PATH = ("market_analyst", "industry_analyst", "risk_assessor", "financial_analyst")

UNIT_PATTERN = re.compile(r"(\d+\.?\d*)\s*(万|亿|元|吨|%|个月)")

CONFLICTING_CONCLUSIONS = 30
AGREEING_CONCLUSIONS = 90


def forward_prompt(user_input: str) -> str:
    return f"""【正推分析】
从用户现有条件出发，分析可行的商业方案。

用户条件：
{user_input}

请分析：
1. 基于现有条件，有哪些可行的商业方向？
2. 每个方向的启动成本、预期收益、风险如何？
3. 推荐哪个方向？为什么？"""


def reverse_prompt(user_input: str) -> str:
    return f"""【倒推分析】
假设用户要实现商业成功，倒推需要满足的条件。

用户条件：
{user_input}

请分析：
1. 要实现年净利润20万以上，需要什么条件？
2. 当前条件与目标条件的差距是什么？
3. 如何弥补这些差距？
4. 如果无法弥补，应该调整什么目标？"""


@dataclass
class PathAgreement:
    data_consistency: float = 100.0
    conclusion_consistency: float = 100.0
    recommendation_consistency: float = 100.0

    @property
    def confidence(self) -> float:
        return (
            self.data_consistency * 0.4
            + self.conclusion_consistency * 0.35
            + self.recommendation_consistency * 0.25
        )

    @property
    def average(self) -> float:
        return (self.data_consistency + self.conclusion_consistency + self.recommendation_consistency) / 3

    def to_dict(self) -> Dict[str, float]:
        return {
            "dataConsistency": round(self.data_consistency, 1),
            "conclusionConsistency": round(self.conclusion_consistency, 1),
            "recommendationConsistency": round(self.recommendation_consistency, 1),
        }


@dataclass
class MixedModeResult:
    forward_results: Dict[str, str] = field(default_factory=dict)
    reverse_results: Dict[str, str] = field(default_factory=dict)
    agreement: PathAgreement = field(default_factory=PathAgreement)
    synthesis: str = ""

    @property
    def confidence(self) -> float:
        return self.agreement.confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confidence": round(self.confidence, 1),
            "crossValidation": self.agreement.to_dict(),
        }


def _by_unit(content: str) -> Dict[str, List[float]]:
    grouped: Dict[str, List[float]] = {}
    for value, unit in UNIT_PATTERN.findall(content):
        grouped.setdefault(unit, []).append(float(value))
    return grouped


def data_consistency(first: str, second: str) -> float:
    a, b = _by_unit(first), _by_unit(second)
    scores = []
    for unit in a.keys() & b.keys():
        avg_a = sum(a[unit]) / len(a[unit])
        avg_b = sum(b[unit]) / len(b[unit])
        high = max(avg_a, avg_b)
        scores.append(max(0.0, 100 - abs(avg_a - avg_b) / high * 100) if high > 0 else 100.0)
    return sum(scores) / len(scores) if scores else 100.0


def conclusion_consistency(first: str, second: str) -> float:
    a, b = extract_conclusion(first), extract_conclusion(second)
    if not a or not b:
        return 100.0
    verdicts = (stance(a), stance(b))
    if None not in verdicts and verdicts[0] != verdicts[1]:
        return CONFLICTING_CONCLUSIONS
    return AGREEING_CONCLUSIONS


def recommendation_consistency(first: str, second: str) -> float:
    a, b = extract_recommendation(first), extract_recommendation(second)
    if not a or not b:
        return 100.0
    return jaccard(tokenize(a), tokenize(b)) * 100


def compare_paths(forward: Dict[str, str], reverse: Dict[str, str]) -> PathAgreement:
    forward_text = "\n".join(forward.values())
    reverse_text = "\n".join(reverse.values())
    return PathAgreement(
        data_consistency=data_consistency(forward_text, reverse_text),
        conclusion_consistency=conclusion_consistency(forward_text, reverse_text),
        recommendation_consistency=recommendation_consistency(forward_text, reverse_text),
    )


def key_points(content: str) -> str:
    points = []
    conclusion = extract_conclusion(content)
    if conclusion:
        points.append(f"结论：{conclusion}")
    recommendation = extract_recommendation(content)
    if recommendation:
        points.append(f"建议：{recommendation}")
    figures = [m.group(0) for m in re.finditer(r"\d+\.?\d*\s*(?:万|亿|元)[^。\n]{0,20}", content)]
    if figures:
        points.append(f"关键数据：{'、'.join(figures[:3])}")
    return "\n".join(points)


def synthesize(forward: Dict[str, str], reverse: Dict[str, str], agreement: PathAgreement) -> str:
    lines = [
        "# 正推与倒推综合分析",
        "",
        "## 正推分析结论",
        "",
        key_points("\n".join(forward.values())),
        "",
        "## 倒推分析结论",
        "",
        key_points("\n".join(reverse.values())),
        "",
        "## 交叉验证结果",
        "",
        f"- 数据一致性：{agreement.data_consistency:.0f}%",
        f"- 结论一致性：{agreement.conclusion_consistency:.0f}%",
        f"- 建议一致性：{agreement.recommendation_consistency:.0f}%",
        "",
        "## 综合结论",
        "",
    ]
    if agreement.average >= 80:
        lines.append("正推与倒推分析结果高度一致，结论可信度高。")
    elif agreement.average >= 50:
        lines.append("正推与倒推分析结果存在部分差异，建议关注差异点。")
    else:
        lines.append("正推与倒推分析结果存在较大冲突，需要进一步核实。")
    return "\n".join(lines)


async def _run_path(role_ids: Sequence[str], prompt: str, user_input: str, execute_role: RoleCallback) -> Dict[str, str]:
    results = {}
    for role_id in role_ids:
        results[role_id] = await execute_role(role_id, prompt, user_input)
    return results


async def run_mixed_mode(user_input: str, execute_role: RoleCallback) -> MixedModeResult:
    """Run both paths concurrently, each path role by role, then synthesize."""
    forward, reverse = await asyncio.gather(
        _run_path(FORWARD_PATH, forward_prompt(user_input), user_input, execute_role),
        _run_path(REVERSE_PATH, reverse_prompt(user_input), user_input, execute_role),
    )
    agreement = compare_paths(forward, reverse)
    return MixedModeResult(
        forward_results=forward,
        reverse_results=reverse,
        agreement=agreement,
        synthesis=synthesize(forward, reverse, agreement),
    )
