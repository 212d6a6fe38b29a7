"""Tests for the five verification firewalls and the pipeline that runs them."""

from datetime import datetime

import pytest

from core.types import Citation
from firewalls import (
    AuditFirewall,
    Auditor,
    ConstraintLimits,
    CorrectionFirewall,
    DualModelFirewall,
    Firewall,
    PreConstraintValidator,
    PrefillSearchFirewall,
    TriangulationFirewall,
    Triangulator,
    VerificationPipeline,
    constraint_satisfaction,
    correct,
)
from firewalls.audit import grade_for

from conftest import FakeSearch, make_session

LIMITS = ConstraintLimits()


class BrokenFirewall(Firewall):
    number = 9
    name = "broken"

    async def run(self, session):
        raise RuntimeError("stage crashed")


class PassingFirewall(Firewall):
    number = 8
    name = "passing"

    async def run(self, session):
        return self.result(True, note="ok")


# Pipeline

async def test_failing_stage_degrades_to_its_default(session):
    pipeline = VerificationPipeline([BrokenFirewall(), PassingFirewall()])

    result = await pipeline.run_stage(9, session)

    assert result.passed is None
    assert result.payload == {"degraded": True}
    assert session.verification_results == [result]


async def test_sequence_and_concurrent_runs_keep_order(session):
    pipeline = VerificationPipeline([BrokenFirewall(), PassingFirewall()])

    await pipeline.run_sequence([8, 9], session)
    await pipeline.run_concurrently([9, 8], session)

    assert [r.firewall for r in session.verification_results] == [8, 9, 9, 8]
    assert pipeline.numbers == [8, 9]


async def test_summary_keeps_latest_result_per_firewall(session):
    pipeline = VerificationPipeline([PassingFirewall()])
    await pipeline.run_stage(8, session)
    await pipeline.run_stage(8, session)

    summary = pipeline.summary(session)
    assert list(summary) == ["firewall8"]
    assert summary["firewall8"] == {"firewall": 8, "name": "passing", "passed": True, "note": "ok"}


# Firewall 0: pre-constraint validation

def test_plain_question_passes_pre_check():
    result = PreConstraintValidator().validate("我有13万资金想做光伏项目")
    assert result.passed
    assert result.constraint_prompt == ""


def test_illegal_keyword_and_budget_are_flagged():
    result = PreConstraintValidator().validate("投资50万做灰色生意")

    assert not result.passed
    assert result.should_regenerate
    assert any("灰色" in v for v in result.violations)
    assert any("预算50万" in v for v in result.violations)
    assert "【⚠️ 重要约束提醒 - 必须遵守】" in result.constraint_prompt
    assert result.to_dict()["shouldRegenerate"] is True


def test_payback_request_over_limit_is_flagged():
    result = PreConstraintValidator().validate("希望24个月回本")
    assert result.violations == ["要求回本周期24个月超过限制12个月"]
    assert not result.should_regenerate


# Firewalls 1 and 2: search grounding

async def test_prefill_search_stores_results(session):
    result = await PrefillSearchFirewall(FakeSearch()).run(session)
    assert result.passed
    assert result.payload["resultCount"] == 3
    assert len(session.search_results.combined) == 3


async def test_prefill_search_failure_degrades(session):
    pipeline = VerificationPipeline([PrefillSearchFirewall(FakeSearch(error=ConnectionError("offline")))])
    result = await pipeline.run_stage(1, session)
    assert result.passed is False
    assert result.payload["resultCount"] == 0


async def test_triangulation_counts_distinct_domains_only():
    hits = [
        Citation("a", "https://www.gov.cn/a", ""),
        Citation("b", "https://gov.cn/b", ""),
        Citation("c", "https://www.reuters.com/c", ""),
        Citation("d", "not a url", ""),
        Citation("e", "https://36kr.com/e", ""),
        Citation("f", "https://stats.gov.cn/f", ""),
    ]
    points = await Triangulator(FakeSearch(hits)).triangulate(["光伏装机增长"], "光伏")

    sources = [s.url for s in points[0].sources]
    assert sources == ["https://www.gov.cn/a", "https://www.reuters.com/c", "https://36kr.com/e"]
    assert points[0].verified
    assert points[0].confidence == "A"


@pytest.mark.parametrize("count, verified, grade", [(0, False, "C"), (1, False, "C"), (2, True, "B")])
async def test_triangulation_grades(session, count, verified, grade):
    hits = [Citation(str(i), f"https://site{i}.com/x", "") for i in range(count)]
    result = await TriangulationFirewall(Triangulator(FakeSearch(hits))).run(session)
    assert result.passed is verified
    assert result.payload["confidence"] == grade


# Firewall 3: dual model

async def test_dual_model_firewall_is_neutral_without_results(session):
    result = await DualModelFirewall().run(session)
    assert result.passed is None
    assert result.payload == {"results": []}


async def test_dual_model_firewall_fails_on_any_disagreement(session):
    session.cross_validation_results = [
        {"type": "crossValidation", "roleId": "financial_analyst", "consistent": True, "confidence": "A"},
        {"type": "crossValidation", "roleId": "decision_advisor", "consistent": False, "confidence": "B"},
    ]
    result = await DualModelFirewall().run(session)
    assert result.passed is False


# Firewall 4: real-time correction

def test_correction_rewrites_first_over_budget_investment():
    result = correct("方案一投资20万，方案二投资8万。", LIMITS)

    assert result.corrected_content == "方案一投资13万（已修正为预算上限），方案二投资8万。"
    assert result.corrections[0]["original"] == "投资20万"
    assert not result.verified


def test_correction_flags_long_payback_without_rewriting():
    result = correct("预计2年回本", LIMITS)
    assert result.corrections == []
    assert result.corrected_content == "预计2年回本"
    assert result.issues[0]["type"] == "constraint_violation"


def test_correction_flags_implausible_numbers_and_missing_sources():
    result = correct("营收200000000元，利润1 2 3", LIMITS)
    types = [issue["type"] for issue in result.issues]
    assert "data_conflict" in types
    assert "missing_source" in types


async def test_correction_firewall_reports_corrected_roles(session):
    session.corrected_roles = ["copilot", "financial_analyst"]
    result = await CorrectionFirewall().run(session)
    assert result.passed
    assert result.payload["correctionCount"] == 2


# Firewall 5: audit

def test_grade_boundaries():
    assert [grade_for(s) for s in (95, 90, 85, 70, 60, 59.9)] == ["A", "A", "B", "C", "D", "F"]


async def test_audit_penalizes_constraint_breaches():
    report = await Auditor(FakeSearch(), LIMITS).audit("投资20万，预计30个月回本", "光伏")
    constraints = next(d for d in report["dimensions"] if d["name"] == "约束满足")
    assert constraints["score"] == 50
    assert set(constraints["issues"]) == {"投资金额超过预算", "回本周期超过限制"}


async def test_audit_logic_ignores_negated_forms():
    auditor = Auditor(FakeSearch(), LIMITS)

    mixed = await auditor.audit("项目可行。也有人认为不可行。", "q")
    negative_only = await auditor.audit("项目完全不可行。", "q")

    logic = lambda report: next(d for d in report["dimensions"] if d["name"] == "逻辑一致性")
    assert logic(mixed)["score"] == 85
    assert logic(negative_only)["score"] == 100


async def test_audit_fact_check_penalizes_unsupported_claims():
    report = await Auditor(FakeSearch([]), LIMITS).audit("结论：市场规模达到500亿", "光伏")
    facts = report["dimensions"][0]
    assert facts["name"] == "事实核查"
    assert facts["score"] < 100
    assert any("缺乏足够来源支持" in issue for issue in facts["issues"])


async def test_audit_fact_check_tolerates_search_errors():
    report = await Auditor(FakeSearch(error=TimeoutError()), LIMITS).audit("结论：市场规模达到500亿", "光伏")
    facts = report["dimensions"][0]
    assert facts["score"] == 100
    assert "验证失败" in facts["details"]


async def test_audit_timeliness_uses_reference_date():
    auditor = Auditor(FakeSearch(), LIMITS, now=datetime(2026, 6, 1))
    report = await auditor.audit("2020年数据显示，2025年增长明显", "q")
    timeliness = next(d for d in report["dimensions"] if d["name"] == "时效性")
    assert timeliness["issues"] == ["数据可能过期: 2020年"]


async def test_audit_report_shape():
    report = await Auditor(FakeSearch(), LIMITS).audit("", "q")
    assert len(report["dimensions"]) == 10
    assert report["overallGrade"] == grade_for(report["overallScore"])
    assert report["recommendations"]


async def test_audit_firewall_stores_report(session):
    session.aggregated_content = "结论：可行。建议：第一步先调研。风险：可能存在市场不确定。"
    result = await AuditFirewall(Auditor(FakeSearch(), LIMITS)).run(session)
    assert session.audit is not None
    assert result.payload["score"] == session.audit["overallScore"]
    assert result.payload["grade"] == session.audit["overallGrade"]


def test_constraint_satisfaction_scores_report():
    assert constraint_satisfaction("投资10万，预计8个月回本", LIMITS)["score"] == 100
    mixed = constraint_satisfaction("投资20万，预计8个月回本", LIMITS)
    assert mixed["score"] == 50
    assert mixed["details"]["投资上限"]["satisfied"] is False
    assert constraint_satisfaction("没有数字", LIMITS) == {"score": 100, "details": {}}
