"""
Intent classification.

The intent analyst answers in free text that should contain a JSON object;
`parse_intent` is the fallible parser over that answer and `DEFAULT_INTENT`
is what a session falls back to when nothing usable comes back.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from core.types import AnalysisMode
from core.utils import extract_json_object

logger = logging.getLogger(__name__)

MODE_LABELS = {
    AnalysisMode.FORWARD: "正推模式",
    AnalysisMode.REVERSE: "倒推模式",
    AnalysisMode.MIXED: "混合模式",
}


@dataclass(frozen=True)
class Intent:
    mode: AnalysisMode
    project: str = ""
    parsed: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def label(self) -> str:
        return MODE_LABELS[self.mode]


DEFAULT_INTENT = Intent(mode=AnalysisMode.REVERSE, project="")


def parse_mode(value: Any) -> AnalysisMode:
    try:
        return AnalysisMode(str(value).strip().lower())
    except ValueError:
        return DEFAULT_INTENT.mode


def parse_intent(text: str) -> Optional[Intent]:
    """Return the intent carried by a model answer, or None if it has none."""
    if not text:
        return None
    candidate = extract_json_object(text)
    if candidate is None:
        return None
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        logger.warning("Intent answer is not valid JSON: %s", candidate[:100])
        return None
    if not isinstance(data, dict):
        return None

    return Intent(
        mode=parse_mode(data.get("mode") or DEFAULT_INTENT.mode.value),
        project=str(data.get("project") or ""),
        parsed=data,
    )


def intent_or_default(text: str) -> Intent:
    return parse_intent(text) or DEFAULT_INTENT
