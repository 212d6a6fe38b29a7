"""Independence and credibility scoring of the retrieved search sources."""

import re
from typing import Any, Dict, List, Optional, Sequence

from core.types import Citation
from core.utils import extract_domain, jaccard, tokenize

INDEPENDENCE_THRESHOLD = 60
SIMILARITY_THRESHOLD = 0.5
MAX_CREDIBILITY_SOURCES = 5

ORIGIN_PATTERNS = (
    re.compile(r"数据来源[：:]\s*([^，。\n]+)"),
    re.compile(r"来源[：:]\s*([^，。\n]+)"),
    re.compile(r"据\s*([^，。\n]+?)\s*报道"),
    re.compile(r"引用\s*([^，。\n]+)"),
)

LEVEL_SCORES = {"level1": 95, "level2": 80, "level3": 50, "banned": 0}

LEVEL_KEYWORDS = (
    ("banned", ("weixin.qq.com", "mp.weixin", "toutiao.com", "baijiahao", "zhihu.com")),
    ("level1", ("gov.cn", ".gov", "stats.gov", "cninfo.com.cn", "sse.com.cn", "szse.cn")),
    ("level2", ("reuters", "bloomberg", "mckinsey.com", "ft.com", "wsj.com", "caixin.com")),
)


def original_source(content: str) -> Optional[str]:
    for pattern in ORIGIN_PATTERNS:
        match = pattern.search(content)
        if match:
            return match.group(1).strip()
    return None


def references(content: str) -> List[str]:
    refs = re.findall(r"https?://[^\s]+", content)
    refs += [m.strip() for m in re.findall(r"据\s*([^，。\n]+?)\s*报道", content)]
    return refs


def source_independence(citations: Sequence[Citation]) -> Dict[str, Any]:
    """
    Score how independent the sources are from one another.

    Every source starts at 100 and loses points for citing another source,
    near-duplicate content, a shared upstream origin and a shared domain.
    """
    if not citations:
        return {"overallIndependence": 0, "isIndependent": False, "sources": []}

    entries = []
    for c in citations:
        entries.append({
            "url": c.url,
            "title": c.title,
            "domain": extract_domain(c.url),
            "originalSource": original_source(c.snippet),
            "references": references(c.snippet),
            "referencedBy": [],
            "contentSimilarity": 0.0,
            "independenceScore": 100,
        })

    for i, source in enumerate(entries):
        for j, other in enumerate(entries):
            if i == j:
                continue
            if any((other["domain"] and other["domain"] in r) or (r and r in other["url"])
                   for r in source["references"]):
                source["independenceScore"] -= 15
                other["referencedBy"].append(source["url"])

    tokens = [tokenize(c.snippet) for c in citations]
    for i in range(len(entries)):
        for j in range(i + 1, len(entries)):
            if not tokens[i] and not tokens[j]:
                continue
            similarity = jaccard(tokens[i], tokens[j])
            for k in (i, j):
                entries[k]["contentSimilarity"] = max(entries[k]["contentSimilarity"], similarity)
            if similarity > SIMILARITY_THRESHOLD:
                entries[i]["independenceScore"] -= 10
                entries[j]["independenceScore"] -= 10

    origins = [e["originalSource"].lower() for e in entries if e["originalSource"]]
    if len(set(origins)) < len(origins):
        for e in entries:
            if e["originalSource"]:
                e["independenceScore"] -= 20

    domains: Dict[str, int] = {}
    for e in entries:
        domains[e["domain"]] = domains.get(e["domain"], 0) + 1
    for e in entries:
        if domains[e["domain"]] > 1:
            e["independenceScore"] -= 15

    overall = sum(e["independenceScore"] for e in entries) / len(entries)
    return {
        "overallIndependence": round(overall, 1),
        "isIndependent": overall >= INDEPENDENCE_THRESHOLD,
        "sources": entries,
    }


def classify_source(url: str) -> str:
    url = url.lower()
    for level, keywords in LEVEL_KEYWORDS:
        if any(k in url for k in keywords):
            return level
    return "level3"


def source_credibility(citations: Sequence[Citation]) -> Dict[str, Any]:
    breakdown: Dict[str, int] = {}
    for c in list(citations)[:MAX_CREDIBILITY_SOURCES]:
        breakdown[extract_domain(c.url) or "unknown"] = LEVEL_SCORES[classify_source(c.url)]
    score = sum(breakdown.values()) / len(breakdown) if breakdown else 0
    return {"score": round(score, 1), "breakdown": breakdown}
