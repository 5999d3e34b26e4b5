"""
evals/state.py — The records one case-run produces.

  ResearchOutput  what the research agent handed back (document + process facts)
  JudgeResult     the normalized score record, from either scorer
  CaseMetrics     the named scalar metrics + tags sent to the tracking sink
  CaseRun         everything about one case-run, success or failure

Design principles:
  - ResearchOutput is frozen: created once by the agent runner, consumed by
    exactly one scorer, never edited in between.
  - JudgeResult is a pydantic model, not a dataclass, because half the time
    it's built from LLM-written JSON. Every field is range-checked, and
    hits can never exceed totals. A judge reply that fails this is rejected
    whole — no partially-populated results.
  - A failed case-run still gets a JudgeResult (all zeros, error in
    reasoning). Failures show up in the metrics as zeros, never as gaps.

USAGE:
  from evals.state import JudgeResult, ResearchOutput, CaseRun, RunStatus

  result = JudgeResult.model_validate(judge_json)   # camelCase keys
  print(result.must_discover_hits, result.must_discover_total)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from evals.dataset import EvaluationCase


# ── Status enum ────────────────────────────────────────────────────────────────

class RunStatus(str, Enum):
    """
    How a case-run ended.

    SCORED   → agent produced output (possibly with a non-zero exit) and it was scored
    FAILED   → agent couldn't start, or scoring failed (bad judge reply, transport error)
    TIMEOUT  → agent exceeded its time budget and was killed
    """
    SCORED  = "scored"
    FAILED  = "failed"
    TIMEOUT = "timeout"


# ── ResearchOutput ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ResearchOutput:
    """
    The artifact the research agent produced for one case.

    content is the research document: the newest output file if the agent
    wrote one, otherwise its stdout. May be empty.
    file_path is diagnostic only — which file content came from.
    """
    content: str
    exit_code: int
    duration_ms: float
    file_path: str | None = None
    stdout: str = ""
    stderr: str = ""


# ── JudgeResult ────────────────────────────────────────────────────────────────

class JudgeResult(BaseModel):
    """
    One case-run's score. Same shape from the quick scorer and the judge.

    Field names are snake_case in Python and camelCase on the wire
    (the judge is asked to answer with mustDiscoverHits, not must_discover_hits).
    Unknown keys are rejected; the judge parser also validates in strict mode.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    score: float = Field(ge=0.0, le=1.0)
    keyword_coverage: float = Field(alias="keywordCoverage", ge=0.0, le=1.0)
    must_discover_hits: int = Field(alias="mustDiscoverHits", ge=0)
    must_discover_total: int = Field(alias="mustDiscoverTotal", ge=0)
    should_discover_hits: int = Field(alias="shouldDiscoverHits", ge=0)
    should_discover_total: int = Field(alias="shouldDiscoverTotal", ge=0)
    reasoning: str
    strengths: list[str]
    weaknesses: list[str]

    @model_validator(mode="after")
    def _hits_within_totals(self) -> "JudgeResult":
        if self.must_discover_hits > self.must_discover_total:
            raise ValueError(
                f"mustDiscoverHits ({self.must_discover_hits}) exceeds "
                f"mustDiscoverTotal ({self.must_discover_total})"
            )
        if self.should_discover_hits > self.should_discover_total:
            raise ValueError(
                f"shouldDiscoverHits ({self.should_discover_hits}) exceeds "
                f"shouldDiscoverTotal ({self.should_discover_total})"
            )
        return self

    @classmethod
    def failed(cls, case: EvaluationCase, reason: str) -> "JudgeResult":
        """Zero score for a case-run that never got scored. Totals stay true."""
        findings = case.expected_findings
        return cls(
            score=0.0,
            keyword_coverage=0.0,
            must_discover_hits=0,
            must_discover_total=len(findings.must_discover),
            should_discover_hits=0,
            should_discover_total=len(findings.should_discover),
            reasoning=f"ERROR: {reason}",
            strengths=[],
            weaknesses=[],
        )


# ── CaseMetrics ────────────────────────────────────────────────────────────────

@dataclass
class CaseMetrics:
    """
    Named scalar metrics for one case-run, ready for the tracking sink.

    scores: overall_score, keyword_coverage, must_discover_rate,
            should_discover_rate, pass — all in [0, 1]
    tags:   case_id, domain, difficulty (+ mode, status) — for slicing, not scored
    """
    case_id: str
    scores: dict[str, float]
    tags: dict[str, str] = field(default_factory=dict)


# ── CaseRun ────────────────────────────────────────────────────────────────────

@dataclass
class CaseRun:
    """The complete record of one case-run."""
    case: EvaluationCase
    status: RunStatus
    result: JudgeResult
    metrics: CaseMetrics
    output: ResearchOutput | None = None
    error: str = ""
    elapsed_sec: float = 0.0

    @property
    def case_id(self) -> str:
        return self.case.id

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SCORED

    def to_dict(self) -> dict:
        return {
            "case_id": self.case.id,
            "domain": self.case.domain,
            "difficulty": self.case.difficulty,
            "status": self.status.value,
            "error": self.error,
            "elapsed_sec": self.elapsed_sec,
            "exit_code": self.output.exit_code if self.output else None,
            "file_path": self.output.file_path if self.output else None,
            "result": self.result.model_dump(by_alias=True),
            "metrics": dict(self.metrics.scores),
            "tags": dict(self.metrics.tags),
        }
