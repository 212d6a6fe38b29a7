"""Tests for agents/intent.py."""

from agents.intent import DEFAULT_INTENT, intent_or_default, parse_intent
from core.types import AnalysisMode


def test_parses_json_answer():
    intent = parse_intent('{"mode": "forward", "project": "", "topics": []}')
    assert intent.mode == AnalysisMode.FORWARD
    assert intent.project == ""
    assert intent.parsed["topics"] == []


def test_parses_json_inside_prose_and_code_fence():
    answer = '判断如下：\n```json\n{"mode": "mixed", "project": "光伏+木门"}\n```'
    intent = parse_intent(answer)
    assert intent.mode == AnalysisMode.MIXED
    assert intent.project == "光伏+木门"


def test_unknown_mode_maps_to_default_mode():
    intent = parse_intent('{"mode": "sideways", "project": "光伏"}')
    assert intent.mode == DEFAULT_INTENT.mode
    assert intent.project == "光伏"


def test_missing_mode_maps_to_default_mode():
    assert parse_intent('{"project": "光伏"}').mode == AnalysisMode.REVERSE


def test_unparseable_answers_yield_none():
    assert parse_intent("") is None
    assert parse_intent("倒推模式") is None
    assert parse_intent("{mode: reverse}") is None
    assert parse_intent("[1, 2]") is None


def test_intent_or_default():
    assert intent_or_default("no json here") == DEFAULT_INTENT
    assert DEFAULT_INTENT.mode == AnalysisMode.REVERSE
    assert DEFAULT_INTENT.project == ""
    assert intent_or_default('{"mode": "forward"}').label == "正推模式"
