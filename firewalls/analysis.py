"""
Post-aggregation analyses of the combined report: contradiction detection,
temporal validity and risk visualization.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Pattern

from .constraints import ConstraintLimits


@dataclass(frozen=True)
class ContradictionPattern:
    name: str
    description: str
    pattern: Pattern
    severity: str  # critical | warning | info
    category: str  # logical | numerical | temporal | constraint | semantic
    check: Optional[Callable[[re.Match, ConstraintLimits], bool]] = None


def _both_ways(first: str, second: str) -> Pattern:
    return re.compile(f"{first}.*{second}|{second}.*{first}")


def _over_budget(match: re.Match, limits: ConstraintLimits) -> bool:
    return float(match.group(1)) * 10000 > limits.max_investment


def _over_payback(match: re.Match, limits: ConstraintLimits) -> bool:
    return int(match.group(1)) > limits.max_roi_months


def _numeric(prefix: str, unit: str) -> Pattern:
    one = rf"{prefix}[^\d]*(\d+\.?\d*)\s*{unit}"
    return re.compile(f"{one}.*{one}")


CONTRADICTION_PATTERNS: List[ContradictionPattern] = [
    ContradictionPattern("可行性矛盾", "同时出现可行和不可行", _both_ways("(?<!不)可行", "不可行"), "warning", "logical"),
    ContradictionPattern("推荐矛盾", "同时推荐和不推荐", _both_ways("(?<!不)推荐", "不推荐"), "warning", "logical"),
    ContradictionPattern("盈亏矛盾", "同时盈利和亏损", _both_ways("盈利", "亏损"), "warning", "logical"),
    ContradictionPattern("风险矛盾", "风险高低矛盾", _both_ways("风险低", "风险高"), "warning", "logical"),
    ContradictionPattern("竞争矛盾", "竞争程度矛盾", _both_ways("竞争小", "竞争激烈"), "warning", "logical"),
    ContradictionPattern("供需矛盾", "供需关系矛盾", _both_ways("供不应求", "供过于求"), "warning", "logical"),
    ContradictionPattern("增长矛盾", "增长趋势矛盾", _both_ways("高增长", "市场萎缩"), "warning", "logical"),
    ContradictionPattern("门槛矛盾", "进入门槛矛盾", _both_ways("门槛低", "门槛高"), "warning", "logical"),
    ContradictionPattern("需求矛盾", "市场需求矛盾", _both_ways("需求大", "需求小"), "warning", "logical"),
    ContradictionPattern("利润矛盾", "利润预期矛盾", _both_ways("利润高", "利润低"), "warning", "logical"),

    ContradictionPattern("投资差异", "投资金额差异过大", _numeric("投资", "万"), "warning", "numerical"),
    ContradictionPattern("ROI差异", "回本周期差异过大", re.compile(r"(\d+)\s*个?月.*回本.*(\d+)\s*个?月.*回本"), "warning", "numerical"),
    ContradictionPattern("利润差异", "利润预测差异过大", _numeric("利润", "万"), "warning", "numerical"),
    ContradictionPattern("成本差异", "成本估算差异过大", _numeric("成本", "万"), "warning", "numerical"),
    ContradictionPattern("规模差异", "市场规模差异过大", _numeric("规模", "亿"), "warning", "numerical"),
    ContradictionPattern("增长率差异", "增长率差异过大", _numeric("增长", "%"), "warning", "numerical"),
    ContradictionPattern("份额差异", "市场份额差异过大", _numeric("份额", "%"), "warning", "numerical"),
    ContradictionPattern("价格差异", "价格差异过大", _numeric("价格", "元"), "warning", "numerical"),

    ContradictionPattern("时间线矛盾", "执行时间线矛盾", re.compile(r"(\d+)\s*天.*完成.*(\d+)\s*天.*完成"), "info", "temporal"),
    ContradictionPattern("季节矛盾", "季节性建议矛盾", _both_ways("旺季", "淡季"), "info", "temporal"),
    ContradictionPattern("阶段矛盾", "发展阶段矛盾", _both_ways("初创期", "成熟期"), "info", "temporal"),
    ContradictionPattern("周期矛盾", "周期判断矛盾", _both_ways("上升期", "下降期"), "info", "temporal"),
    ContradictionPattern("时效矛盾", "数据时效矛盾", _both_ways("最新", "过期"), "warning", "temporal"),

    ContradictionPattern("预算超限", "投资超过预算", re.compile(r"投资[^\d]*(\d+\.?\d*)\s*万"), "critical", "constraint", _over_budget),
    ContradictionPattern("ROI超限", "回本周期超限", re.compile(r"(\d{2,})\s*个?月.*回本"), "critical", "constraint", _over_payback),
    ContradictionPattern("合规风险", "存在合规风险", re.compile(r"灰色|违规|逃税|无证"), "critical", "constraint"),
    ContradictionPattern("资源不足", "资源需求超过可用", re.compile(r"需要.*人员.*\d+.*现有.*人员.*\d+"), "warning", "constraint"),

    ContradictionPattern("因果矛盾", "因果关系矛盾", re.compile(r"因为.*所以.*成功.*失败|因为.*所以.*失败.*成功"), "warning", "semantic"),
    ContradictionPattern("比较矛盾", "比较结论矛盾", re.compile(r"A.*优于.*B.*B.*优于.*A"), "warning", "semantic"),
    ContradictionPattern("条件矛盾", "条件判断矛盾", re.compile(r"如果.*那么.*成功.*如果.*那么.*失败"), "warning", "semantic"),
]


def detect_contradictions(content: str, limits: Optional[ConstraintLimits] = None) -> Dict[str, Any]:
    limits = limits or ConstraintLimits()
    found = []
    for p in CONTRADICTION_PATTERNS:
        match = p.pattern.search(content)
        if not match:
            continue
        if p.check is not None and not p.check(match, limits):
            continue
        found.append({
            "name": p.name,
            "description": p.description,
            "severity": p.severity,
            "category": p.category,
            "matches": [match.group(0)[:200]],
        })

    summary = {severity: sum(1 for c in found if c["severity"] == severity)
               for severity in ("critical", "warning", "info")}
    summary["total"] = len(found)
    return {"contradictions": found, "summary": summary}


# ==================== Temporal validity ====================

DATA_KINDS = (
    ("price", re.compile(r"(价格|报价|成本)[^\d]*(\d+\.?\d*)\s*(元|万)"), 7),
    ("industry", re.compile(r"(市场规模|增长率|份额)[^\d]*(\d+\.?\d*)\s*(亿|万|%)"), 90),
    ("policy", re.compile(r"(政策|法规|规定|办法)[^。]*\d"), 180),
)

DATE_PATTERNS = (
    re.compile(r"(\d{4})-(\d{2})-(\d{2})"),
    re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日"),
    re.compile(r"(\d{4})/(\d{1,2})/(\d{1,2})"),
    re.compile(r"(\d{4})\.(\d{1,2})\.(\d{1,2})"),
)

DATE_WINDOW = 200


def find_nearby_date(content: str, position: int) -> Optional[date]:
    nearby = content[max(0, position - DATE_WINDOW): position + DATE_WINDOW]
    for pattern in DATE_PATTERNS:
        match = pattern.search(nearby)
        if match:
            try:
                return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            except ValueError:
                continue

    match = re.search(r"(\d{4})年", nearby)
    if match and 2020 <= int(match.group(1)) <= 2030:
        return date(int(match.group(1)), 1, 1)
    return None


def check_time_validity(content: str, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or datetime.now().date()
    points = []
    for kind, pattern, max_age in DATA_KINDS:
        for match in pattern.finditer(content):
            found = find_nearby_date(content, match.start())
            age = (today - found).days if found else 0
            points.append({
                "claim": match.group(0)[:50],
                "dataType": kind,
                "detectedDate": found.isoformat() if found else None,
                "maxAge": max_age,
                "actualAge": age,
                "valid": age <= max_age,
            })

    valid = sum(1 for p in points if p["valid"])
    return {
        "dataPoints": points,
        "overallValidity": round(valid / len(points) * 100) if points else 100,
        "expiredCount": sum(1 for p in points if not p["valid"] and p["actualAge"] > p["maxAge"] * 2),
        "warningCount": sum(1 for p in points if not p["valid"] and p["actualAge"] <= p["maxAge"] * 2),
    }


# ==================== Risk visualization ====================

RISK_CATEGORIES = (
    ("市场风险", 30, (("竞争激烈", 20), ("市场萎缩", 25), ("需求下降", 20), ("增长", -10))),
    ("财务风险", 30, (("投资大", 15), ("回本周期长", 15), ("利润低", 10), ("现金流", 10))),
    ("运营风险", 25, (("技术门槛", 15), ("人才", 10), ("供应链", 10))),
    ("合规风险", 20, (("许可", 15), ("监管", 10), ("环保", 10))),
)


def _category_level(score: int) -> str:
    if score >= 70:
        return "high"
    if score >= 50:
        return "medium"
    return "low"


def _overall_level(score: int) -> str:
    if score >= 80:
        return "critical"
    if score >= 60:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


def visualize_risk(report: str) -> Dict[str, Any]:
    categories = []
    for name, base, bumps in RISK_CATEGORIES:
        hits = [(keyword, delta) for keyword, delta in bumps if keyword in report]
        score = base + sum(delta for _, delta in hits)
        categories.append({
            "category": name,
            "score": score,
            "level": _category_level(score),
            "factors": [keyword for keyword, _ in hits],
        })

    impact = {"high": 0.8, "medium": 0.5, "low": 0.2}
    return {
        "overallRisk": _overall_level(max(c["score"] for c in categories)),
        "riskScore": round(sum(c["score"] for c in categories) / len(categories)),
        "categories": categories,
        "matrix": [
            {"label": c["category"], "probability": c["score"] / 100, "impact": impact[c["level"]]}
            for c in categories
        ],
        "mitigationSuggestions": [
            f"针对{c['category']}：建议制定详细的风险应对计划"
            for c in categories if c["level"] == "high"
        ],
    }
