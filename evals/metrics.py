"""
evals/metrics.py — Quick scoring heuristic and per-case metric aggregation.

QUICK SCORE (no LLM, no I/O, deterministic):

  keyword_coverage(content, keywords)
    Fraction of keywords that appear in the document (case-insensitive substring).
    Returns: {"found": [...], "missing": [...], "coverage": 0.0-1.0}

  statement_hit(content_lower, statement)
    Is a must-discover statement "present"? Split it into words; it's a hit
    when at least half of its words appear somewhere in the document.
    "At least half" is a real-number comparison: 3 words need 2 matches,
    4 words need 2, 5 words need 3.

  quick_score(findings, content)
    score = 0.6 × must-discover coverage + 0.4 × keyword coverage
    Returns a JudgeResult, same shape the LLM judge produces.

  The quick score never looks at shouldDiscover: it reports 0 hits against
  the real total. That understates heuristic-mode quality for any case with
  should-discover items, and is kept as-is so quick scores stay comparable
  with earlier runs. Use the judge when should-discover coverage matters.

AGGREGATION:

  discovery_rate(hits, total)   hits / total, 0.0 when total is 0
  passed(score)                 1 if score ≥ 0.7 else 0
  case_metrics(case, result)    the five named metrics + slicing tags
  summarize(runs)               batch means, pass rate, status counts

USAGE:
  from evals.metrics import quick_score, case_metrics

  result = quick_score(case.expected_findings, document_text)
  metrics = case_metrics(case, result)
  print(metrics.scores["overall_score"], metrics.scores["pass"])
"""

from config import settings
from evals.dataset import EvaluationCase, ExpectedFindings
from evals.state import CaseMetrics, CaseRun, JudgeResult, RunStatus


MUST_DISCOVER_WEIGHT = 0.6
KEYWORD_WEIGHT = 0.4

QUICK_SCORE_REASONING = (
    "Quick score: keyword/string-overlap heuristic, no LLM judge. "
    "Should-discover items are not checked in this mode."
)

METRIC_NAMES = (
    "overall_score",
    "keyword_coverage",
    "must_discover_rate",
    "should_discover_rate",
    "pass",
)


# ── Keyword coverage ──────────────────────────────────────────────────────────

def keyword_coverage(content: str, keywords: list[str]) -> dict:
    """
    What fraction of expected keywords appear in the document?

    Matching is case-insensitive substring search.
    No keywords → coverage 0.0 (not a division error).
    """
    content_lower = content.lower()
    found = [kw for kw in keywords if kw.lower() in content_lower]
    missing = [kw for kw in keywords if kw.lower() not in content_lower]
    coverage = len(found) / len(keywords) if keywords else 0.0

    return {
        "found": found,
        "missing": missing,
        "coverage": coverage,
    }


# ── Must-discover matching ────────────────────────────────────────────────────

def statement_hit(content_lower: str, statement: str) -> bool:
    """
    True when at least half of the statement's words occur in the content.

    content_lower must already be lower-cased. Each word is matched as a
    substring anywhere in the content, not as a whole word.
    """
    words = statement.lower().split()
    matches = sum(1 for w in words if w in content_lower)
    return matches >= len(words) / 2


def must_discover_hits(content: str, statements: list[str]) -> list[str]:
    """The statements that count as discovered, in rubric order."""
    content_lower = content.lower()
    return [s for s in statements if statement_hit(content_lower, s)]


# ── Quick score ───────────────────────────────────────────────────────────────

def quick_score(findings: ExpectedFindings, content: str) -> JudgeResult:
    """
    Deterministic approximation of the judge score.

    Same inputs always give the same JudgeResult.
    """
    kw = keyword_coverage(content, findings.keywords)
    hits = must_discover_hits(content, findings.must_discover)

    must_total = len(findings.must_discover)
    must_coverage = len(hits) / must_total if must_total else 0.0
    score = MUST_DISCOVER_WEIGHT * must_coverage + KEYWORD_WEIGHT * kw["coverage"]

    missed = [s for s in findings.must_discover if s not in hits]
    weaknesses = [f"Missing must-discover: {s}" for s in missed]
    weaknesses += [f"Missing keyword: {k}" for k in kw["missing"]]

    return JudgeResult(
        score=score,
        keyword_coverage=kw["coverage"],
        must_discover_hits=len(hits),
        must_discover_total=must_total,
        should_discover_hits=0,
        should_discover_total=len(findings.should_discover),
        reasoning=QUICK_SCORE_REASONING,
        strengths=[],
        weaknesses=weaknesses,
    )


# ── Aggregation ───────────────────────────────────────────────────────────────

def discovery_rate(hits: int, total: int) -> float:
    return hits / total if total > 0 else 0.0


def passed(score: float, threshold: float | None = None) -> int:
    """1 if the score reaches the pass threshold (default 0.7), else 0."""
    if threshold is None:
        threshold = settings.pass_threshold
    return 1 if score >= threshold else 0


def case_metrics(
    case: EvaluationCase,
    result: JudgeResult,
    *,
    mode: str = "",
    status: RunStatus = RunStatus.SCORED,
    threshold: float | None = None,
) -> CaseMetrics:
    """
    Turn one JudgeResult into the named metrics a tracking sink records.

    Every metric is independent and in [0, 1]. Tags are for slicing only.
    """
    scores = {
        "overall_score": result.score,
        "keyword_coverage": result.keyword_coverage,
        "must_discover_rate": discovery_rate(
            result.must_discover_hits, result.must_discover_total
        ),
        "should_discover_rate": discovery_rate(
            result.should_discover_hits, result.should_discover_total
        ),
        "pass": float(passed(result.score, threshold)),
    }
    tags = {
        "case_id": case.id,
        "domain": case.domain,
        "difficulty": case.difficulty,
        "status": status.value,
    }
    if mode:
        tags["mode"] = mode

    return CaseMetrics(case_id=case.id, scores=scores, tags=tags)


# ── Batch summary ─────────────────────────────────────────────────────────────

def summarize(runs: list[CaseRun]) -> dict:
    """
    Batch-level roll-up. Failed and timed-out runs count as zeros in the means.

    Returns:
        n_cases, scored, failed, timeout counts
        mean_<metric> for every metric name
        pass_rate (same as mean_pass, named for readability)
    """
    n = len(runs)
    summary: dict = {
        "n_cases": n,
        "scored": sum(1 for r in runs if r.status == RunStatus.SCORED),
        "failed": sum(1 for r in runs if r.status == RunStatus.FAILED),
        "timeout": sum(1 for r in runs if r.status == RunStatus.TIMEOUT),
    }
    for name in METRIC_NAMES:
        values = [r.metrics.scores[name] for r in runs]
        summary[f"mean_{name}"] = sum(values) / n if n else 0.0
    summary["pass_rate"] = summary["mean_pass"]
    return summary
