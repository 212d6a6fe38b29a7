"""Tests for core/tuning.py."""

from datetime import datetime, timedelta

import pytest

from core.tuning import PromptTuning, learning_report
from core.types import Feedback


def test_no_feedback_leaves_prompt_unchanged():
    assert PromptTuning.from_feedback([]).apply("prompt", "market_analyst") == "prompt"


def test_comments_shift_preferences():
    tuning = PromptTuning.from_feedback([
        Feedback(rating=4, comment="希望多看高风险高回报的项目"),
        Feedback(rating=4, comment="更在意利润，最好快速回本"),
    ])
    assert tuning.risk_tolerance == 0.8
    assert tuning.profit_focus == 0.8
    assert tuning.time_preference == 0.8

    prompt = tuning.apply("base", "market_analyst")
    assert "用户风险承受能力较高" in prompt
    assert "用户更关注利润" in prompt
    assert "用户偏好快速见效的项目" in prompt


def test_role_weights_are_bounded():
    unhelpful = [Feedback(rating=1, role_feedback={"copilot": False}) for _ in range(10)]
    tuning = PromptTuning.from_feedback(unhelpful)

    assert tuning.role_weights["copilot"] == 0.5
    assert "此角色历史准确率较低" in tuning.apply("base", "copilot")
    assert "此角色历史准确率较低" not in tuning.apply("base", "market_analyst")


def test_repeated_corrections_become_rules():
    history = [Feedback(rating=2, correction="光伏补贴已取消") for _ in range(2)]
    tuning = PromptTuning.from_feedback(history)

    assert tuning.top_rules() == ["光伏补贴已取消"]
    assert "- 光伏补贴已取消（权重90%）" in tuning.apply("base", "copilot")


def test_single_correction_is_not_yet_a_rule():
    tuning = PromptTuning.from_feedback([Feedback(rating=2, correction="光伏补贴已取消")])
    assert tuning.rule_weights["光伏补贴已取消"] == pytest.approx(0.7)


def test_learning_report_without_feedback():
    report = learning_report([])
    assert report["casesCollected"] == 0
    assert report["overall"] == {"totalFeedback": 0, "averageRating": 0.0, "adoptionRate": 0.0, "accuracy": 0.0}
    assert report["byRole"] == []
    assert report["topRules"] == []


def test_learning_report_rates_roles_and_rules():
    day = datetime(2026, 3, 1, 9)
    history = [
        Feedback(rating=5, adopted=True, role_feedback={"market_analyst": True}, created_at=day),
        Feedback(rating=3, role_feedback={"market_analyst": False, "risk_assessor": True},
                 correction="光伏补贴已取消", created_at=day),
        Feedback(rating=4, adopted=True, correction="光伏补贴已取消", created_at=day + timedelta(days=1)),
    ]
    report = learning_report(history)

    assert report["overall"]["adoptionRate"] == pytest.approx(2 / 3)
    assert report["overall"]["accuracy"] == pytest.approx(2 / 3)
    assert report["byRole"] == [
        {"roleId": "risk_assessor", "accuracy": 1.0, "totalCases": 1},
        {"roleId": "market_analyst", "accuracy": 0.5, "totalCases": 2},
    ]
    assert report["recentTrend"] == [
        {"date": "2026-03-01", "accuracy": 0.5, "sampleSize": 2},
        {"date": "2026-03-02", "accuracy": 1.0, "sampleSize": 1},
    ]
    assert report["rulesLearned"] == 1
    assert [r["rule"] for r in report["topRules"]] == ["光伏补贴已取消"]
    assert learning_report(history, top_roles=1)["byRole"][0]["roleId"] == "risk_assessor"
