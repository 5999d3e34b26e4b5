"""
evals/dataset.py — Evaluation cases: schema, loading, and selection.

WHAT A CASE IS:
  One hypothesis to research plus the rubric to grade the result with.

  - hypothesis:          the question/claim handed to the research agent
  - context:             background the agent (and the judge) get
  - expectedFindings:    mustDiscover / shouldDiscover facts + keywords
  - knownAnswerSummary:  reference answer — shown to the judge ONLY,
                         never to the research agent

WHY PYDANTIC AND NOT PLAIN DICTS:
  A case set with a typo'd field or a string where a list belongs would
  silently produce wrong scores (a string "keywords" iterates by character).
  pydantic rejects the document up front. And it rejects the WHOLE load —
  we never drop bad cases and grade the rest, because metrics over an
  unintentionally-filtered set look fine and mean nothing.

CASE-SET FILE FORMAT (evals/cases.json):
  {
    "meta":  {"version": "1.0", "description": "...", "total_cases": 5,
              "domains": ["systems", ...]},
    "cases": [{"id": "sys-001", "domain": "systems", "difficulty": "easy",
               "hypothesis": "...", "context": "...",
               "expectedFindings": {"mustDiscover": [...],
                                    "shouldDiscover": [...],
                                    "keywords": [...]},
               "knownAnswerSummary": "..."}]
  }

SELECTION:
  case_id — exact match, zero matches is an error (you asked for one thing)
  filter  — id prefix OR exact domain, zero matches is just an empty run

USAGE:
  from evals.dataset import load_cases, select_cases

  case_set = load_cases("evals/cases.json")
  cases = select_cases(case_set.cases, filter="sys-")
"""

import json
from pathlib import Path
from typing import Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from evals.errors import NotFoundError, ValidationError


Difficulty = Literal["easy", "medium", "hard"]


# ── Schema ────────────────────────────────────────────────────────────────────

class ExpectedFindings(BaseModel):
    """
    The grading rubric for one case.

    must_discover:   critical facts — missing one is a severe miss
    should_discover: desirable facts — missing one is minor
    keywords:        terms a correct answer is expected to mention
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    must_discover: list[str] = Field(alias="mustDiscover")
    should_discover: list[str] = Field(alias="shouldDiscover")
    keywords: list[str]


class EvaluationCase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    domain: str
    difficulty: Difficulty
    hypothesis: str
    context: str
    expected_findings: ExpectedFindings = Field(alias="expectedFindings")
    known_answer_summary: str = Field(alias="knownAnswerSummary")


class CaseSetMeta(BaseModel):
    version: str
    description: str
    total_cases: int
    domains: list[str]


class CaseSet(BaseModel):
    meta: CaseSetMeta
    cases: list[EvaluationCase]

    @property
    def domains(self) -> list[str]:
        return sorted({c.domain for c in self.cases})


# ── Loading ───────────────────────────────────────────────────────────────────

def parse_case_set(raw: dict) -> CaseSet:
    """
    Validate a decoded case-set document.

    Raises ValidationError (ours, not pydantic's) on any shape problem or
    duplicate case id. Never returns a partial set.
    """
    try:
        case_set = CaseSet.model_validate(raw)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid case set: {_describe(e)}") from e

    seen: set[str] = set()
    duplicates = []
    for case in case_set.cases:
        if case.id in seen:
            duplicates.append(case.id)
        seen.add(case.id)
    if duplicates:
        raise ValidationError(f"Duplicate case ids: {sorted(set(duplicates))}")

    if case_set.meta.total_cases != len(case_set.cases):
        _log(
            f"meta.total_cases={case_set.meta.total_cases} but "
            f"{len(case_set.cases)} cases are defined"
        )

    return case_set


def load_cases(path: str | Path) -> CaseSet:
    """Read and validate a case-set JSON file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Case set {path} is not valid JSON: {e}") from e
    return parse_case_set(raw)


# ── Selection ─────────────────────────────────────────────────────────────────

def select_cases(
    cases: list[EvaluationCase],
    case_id: str | None = None,
    filter: str | None = None,
) -> list[EvaluationCase]:
    """
    Pick which cases run in this batch. Order is preserved.

    case_id wins over filter when both are given.
    Raises NotFoundError only for an unmatched case_id.
    """
    if case_id:
        selected = [c for c in cases if c.id == case_id]
        if not selected:
            raise NotFoundError(f"No case with id '{case_id}'")
        return selected

    if filter:
        return [c for c in cases if c.id.startswith(filter) or c.domain == filter]

    return list(cases)


# ── Private helpers ───────────────────────────────────────────────────────────

def _describe(error: pydantic.ValidationError) -> str:
    """Compact one-line summary: 'cases.0.difficulty: Input should be ...; ...'"""
    parts = []
    for err in error.errors()[:5]:
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    extra = error.error_count() - len(parts)
    if extra > 0:
        parts.append(f"... and {extra} more")
    return "; ".join(parts)


def _log(message: str) -> None:
    print(f"[eval-dataset] {message}")
