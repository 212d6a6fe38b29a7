import re
from typing import List, Optional, Set
from urllib.parse import urlparse


def clean_json_response(content: str) -> str:
    """
    Clean JSON response from LLM by removing markdown code blocks.

    Args:
        content: The raw string response from LLM

    Returns:
        Cleaned string containing just the JSON content
    """
    pattern = r"```(?:json)?\s*(.*?)\s*```"
    match = re.search(pattern, content, re.DOTALL)
    if match:
        return match.group(1)
    return content.strip()


def extract_json_object(content: str) -> Optional[str]:
    """Return the outermost {...} span of a model answer, if any."""
    match = re.search(r"\{.*\}", clean_json_response(content), re.DOTALL)
    return match.group(0) if match else None


def extract_domain(url: str) -> str:
    """Hostname without a leading www., or "" for unparseable input."""
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return hostname[4:] if hostname.startswith("www.") else hostname


def extract_numbers(content: str) -> List[float]:
    return [float(n) for n in re.findall(r"\d+(?:\.\d+)?", content)]


def tokenize(content: str) -> Set[str]:
    """Lower-cased word and CJK-character tokens for overlap scoring."""
    words = re.findall(r"[a-zA-Z0-9]+", content.lower())
    chars = re.findall(r"[\u4e00-\u9fff]", content)
    return set(words) | set(chars)


def jaccard(a: Set[str], b: Set[str]) -> float:
    if not a and not b:
        return 1.0
    return len(a & b) / len(a | b)


def preview(content: str, limit: int = 100) -> str:
    return content[:limit]


NEGATIVE_MARKERS = ("不可行", "不可以", "不推荐", "不建议", "不值得")
POSITIVE_MARKERS = ("可行", "可以", "推荐", "建议", "值得")


def stance(content: str) -> Optional[bool]:
    """True for a positive verdict, False for a negative one, None when neither shows."""
    if not content:
        return None
    if any(marker in content for marker in NEGATIVE_MARKERS):
        return False
    if any(marker in content for marker in POSITIVE_MARKERS):
        return True
    return None


def extract_conclusion(content: str) -> str:
    match = re.search(r"(结论|判断)[：:]\s*([^。\n]+)", content)
    return match.group(2) if match else ""


def extract_recommendation(content: str) -> str:
    match = re.search(r"(建议|推荐)[：:]\s*([^。\n]+)", content)
    return match.group(2) if match else ""
