"""
Post-hoc audit of the aggregated report.

Ten independent dimensions each start from a full score and lose points
for what they find; the overall score is their average.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.degrade import guarded
from core.types import ExecutionSession, VerificationResult

from .base import Firewall
from .constraints import INVESTMENT_PATTERN, PAYBACK_PATTERN, ConstraintLimits

MAX_FACT_CHECKS = 5

LOGIC_PAIRS = (
    (r"(?<!不)可行", r"不可行", "可行性矛盾"),
    (r"(?<!不)推荐", r"不推荐", "推荐矛盾"),
    (r"盈利", r"亏损", "盈亏矛盾"),
    (r"风险低", r"风险高", "风险矛盾"),
    (r"竞争小", r"竞争激烈", "竞争矛盾"),
)

REQUIRED_SECTIONS = (
    ("市场分析", ("市场", "规模", "需求")),
    ("财务分析", ("投资", "成本", "利润")),
    ("风险分析", ("风险", "注意")),
    ("执行建议", ("建议", "步骤", "方案")),
    ("结论", ("结论", "判断")),
)

RISK_KEYWORDS = ("风险", "注意", "警告", "可能", "不确定")

GRADE_SUMMARIES = {
    "A": "报告通过全面审计，{passed}/{total}维度验证通过，数据可信度高",
    "B": "报告基本通过审计，{passed}/{total}维度验证通过，部分问题需关注",
    "C": "报告存在较多问题，{failed}个维度未通过，建议核实",
    "D": "报告存在严重问题，建议重新分析",
    "F": "报告未通过审计，需要重新生成",
}


@dataclass
class AuditDimension:
    name: str
    score: int = 100
    issues: List[str] = field(default_factory=list)
    details: List[str] = field(default_factory=list)

    def penalize(self, points: int, issue: Optional[str] = None, detail: Optional[str] = None) -> None:
        self.score = max(0, self.score - points)
        if issue:
            self.issues.append(issue)
        if detail:
            self.details.append(detail)

    @property
    def verified(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "issues": self.issues,
            "verified": self.verified,
            "details": "\n".join(self.details),
        }


def grade_for(score: float) -> str:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def extract_claims(report: str) -> List[str]:
    claims = re.findall(r"[^。！？\n]*\d+\.?\d*\s*(?:万|亿|元|吨|%|个月)[^。！？\n]*", report)
    claims += re.findall(r"(?:结论|建议|推荐|判断|观点)[：:]\s*[^。\n]+", report)
    claims += re.findall(r"(?:预计|预测|估计|预期)[^。\n]+", report)
    return list(dict.fromkeys(c.strip() for c in claims if c.strip()))


class Auditor:
    """Scores a finished report on ten dimensions."""

    def __init__(self, search_client: Any, limits: Optional[ConstraintLimits] = None, now: Optional[datetime] = None):
        self.search_client = search_client
        self.limits = limits or ConstraintLimits()
        self.now = now

    async def audit(self, report: str, original_input: str) -> Dict[str, Any]:
        dimensions = [
            await self._facts(report, original_input),
            self._data_consistency(report),
            self._logic_consistency(report),
            self._constraints(report),
            self._source_reliability(report),
            self._timeliness(report),
            self._completeness(report),
            self._actionability(report),
            self._risk_disclosure(report),
            self._conclusion_consistency(report),
        ]

        overall = sum(d.score for d in dimensions) / len(dimensions)
        grade = grade_for(overall)
        passed = sum(1 for d in dimensions if d.verified)
        return {
            "overallScore": round(overall, 1),
            "overallGrade": grade,
            "summary": GRADE_SUMMARIES[grade].format(
                passed=passed, total=len(dimensions), failed=len(dimensions) - passed
            ),
            "dimensions": [d.to_dict() for d in dimensions],
            "recommendations": [
                f"【{d.name}】{'；'.join(d.issues)}" for d in dimensions if d.issues
            ],
        }

    async def _facts(self, report: str, query: str) -> AuditDimension:
        dim = AuditDimension("事实核查")
        claims = extract_claims(report)
        dim.details.append(f"提取了{len(claims)}个关键声明")

        checked = claims[:MAX_FACT_CHECKS]
        verified = 0
        for claim in checked:
            results = await guarded(
                "audit fact check", self.search_client.search, f"{query} {claim[:50]}"
            )
            if results is None:
                dim.details.append(f'"{claim[:30]}..." - 验证失败')
            elif len(results.combined) >= 2:
                verified += 1
                dim.details.append(f'"{claim[:30]}..." - 已验证')
            else:
                dim.penalize(10, f'声明"{claim[:30]}..."缺乏足够来源支持', f'"{claim[:30]}..." - 缺乏来源')
        dim.details.append(f"验证通过: {verified}/{len(checked)}")
        return dim

    def _data_consistency(self, report: str) -> AuditDimension:
        dim = AuditDimension("数据一致性")
        by_unit: Dict[str, List[float]] = {}
        for value, unit in re.findall(r"(\d+\.?\d*)\s*(万|亿|元|吨|%)", report):
            by_unit.setdefault(unit, []).append(float(value))
        dim.details.append(f"发现{sum(len(v) for v in by_unit.values())}个数值")

        for unit, values in by_unit.items():
            if len(values) < 2:
                continue
            low, high = min(values), max(values)
            ratio = high / low if low > 0 else float("inf")
            if ratio > 10:
                dim.penalize(15, f"{unit}单位数值差异过大: {low:g} - {high:g}")
            elif ratio > 5:
                dim.penalize(8, f"{unit}单位数值差异较大: {low:g} - {high:g}")
            dim.details.append(f"{unit}: {len(values)}个数值, 范围{low:g}-{high:g}")
        return dim

    def _logic_consistency(self, report: str) -> AuditDimension:
        dim = AuditDimension("逻辑一致性")
        for first, second, name in LOGIC_PAIRS:
            if re.search(first, report) and re.search(second, report):
                dim.penalize(15, f"存在{name}", f"发现{name}")
        if dim.verified:
            dim.details.append("未发现明显逻辑矛盾")
        return dim

    def _constraints(self, report: str) -> AuditDimension:
        dim = AuditDimension("约束满足")
        limit_wan = self.limits.max_investment_wan

        match = INVESTMENT_PATTERN.search(report)
        if match:
            if float(match.group(1)) * 10000 > self.limits.max_investment:
                dim.penalize(25, "投资金额超过预算", f"投资{match.group(1)}万 > 预算{limit_wan:g}万")
            else:
                dim.details.append(f"投资{match.group(1)}万 <= 预算{limit_wan:g}万 ✓")

        match = PAYBACK_PATTERN.search(report)
        if match:
            months = int(match.group(1))
            if months > self.limits.max_roi_months:
                dim.penalize(25, "回本周期超过限制", f"回本{months}个月 > 限制{self.limits.max_roi_months}个月")
            else:
                dim.details.append(f"回本{months}个月 <= 限制{self.limits.max_roi_months}个月 ✓")

        for keyword in ("灰色", "违规", "逃税"):
            if keyword in report:
                dim.penalize(30, f"包含不合规内容: {keyword}")
        return dim

    def _source_reliability(self, report: str) -> AuditDimension:
        dim = AuditDimension("来源可靠性", score=70)
        sources = len(re.findall(r"来源[：:]", report))
        references = report.count("参考")
        dim.details += [f"来源标注: {sources}处", f"参考引用: {references}处"]
        if sources >= 3:
            dim.score = 95
        elif sources >= 1:
            dim.score = 85
        elif references >= 1:
            dim.score = 80
        else:
            dim.issues.append("缺少数据来源标注")
        return dim

    def _timeliness(self, report: str) -> AuditDimension:
        dim = AuditDimension("时效性")
        current_year = (self.now or datetime.now()).year
        years = [int(y) for y in re.findall(r"(\d{4})[-/年]", report)]
        dim.details.append(f"发现{len(years)}个年份引用")
        for year in years:
            if year < current_year - 2:
                dim.penalize(10, f"数据可能过期: {year}年")
        return dim

    def _completeness(self, report: str) -> AuditDimension:
        dim = AuditDimension("完整性")
        for section, keywords in REQUIRED_SECTIONS:
            if any(k in report for k in keywords):
                dim.details.append(f"{section} ✓")
            else:
                dim.penalize(15, f"缺少{section}", f"{section} ✗")
        return dim

    def _actionability(self, report: str) -> AuditDimension:
        dim = AuditDimension("可操作性")
        if not re.search(r"步骤|第一|第二|第三|首先|然后|最后", report):
            dim.penalize(20, "缺少具体执行步骤")
        if not re.search(r"\d+天|\d+周|\d+月", report):
            dim.penalize(15, "缺少时间规划")
        if not re.search(r"资金|人员|设备|场地", report):
            dim.penalize(10, detail="缺少资源说明")
        return dim

    def _risk_disclosure(self, report: str) -> AuditDimension:
        dim = AuditDimension("风险披露")
        found = [k for k in RISK_KEYWORDS if k in report]
        if len(found) >= 3:
            dim.details.append(f"风险披露充分: {'、'.join(found)} ✓")
        elif found:
            dim.penalize(10, detail=f"有风险提示: {'、'.join(found)}")
        else:
            dim.penalize(30, "缺少风险披露")
        return dim

    def _conclusion_consistency(self, report: str) -> AuditDimension:
        dim = AuditDimension("结论一致性")
        conclusions = re.findall(r"(?:结论|判断|建议|推荐)[：:]\s*[^。\n]+", report)
        dim.details.append(f"发现{len(conclusions)}个结论性语句")
        if len(conclusions) >= 2:
            positive = any(re.search(r"(?<!不)(可行|推荐|值得)", c) for c in conclusions)
            negative = any(re.search(r"不可行|不推荐|不值得", c) for c in conclusions)
            if positive and negative:
                dim.penalize(25, "结论存在矛盾")
        return dim


class AuditFirewall(Firewall):
    number = 5
    name = "后验审计"

    def __init__(self, auditor: Auditor):
        self.auditor = auditor

    async def run(self, session: ExecutionSession) -> VerificationResult:
        session.audit = await self.auditor.audit(session.aggregated_content, session.raw_input)
        return self.result(
            session.audit["overallGrade"] in ("A", "B", "C"),
            score=session.audit["overallScore"],
            grade=session.audit["overallGrade"],
        )

    def default(self) -> VerificationResult:
        return self.result(None, score=None, grade=None, degraded=True)
