"""
evals/scoring.py — Which scorer grades this batch.

Two strategies, one interface:

  QuickScorer  deterministic keyword/string-overlap heuristic, no network
  JudgeScorer  LLM judge with the full rubric and the known answer

The strategy is picked ONCE per batch (select_strategy) and handed to the
runner. Nothing below the runner ever checks DRY_RUN — shared code doesn't
branch on environment flags.

USAGE:
  strategy = select_strategy(dry_run=settings.dry_run)
  result = await strategy.score(case, output)
"""

from typing import Callable, Protocol

from evals.dataset import EvaluationCase
from evals.judge import Judge
from evals.metrics import quick_score
from evals.state import JudgeResult, ResearchOutput


class ScoringStrategy(Protocol):
    name: str

    async def score(self, case: EvaluationCase, output: ResearchOutput) -> JudgeResult:
        ...


class QuickScorer:
    """Heuristic scorer. Pure; safe to share across concurrent case-runs."""

    name = "quick"

    async def score(self, case: EvaluationCase, output: ResearchOutput) -> JudgeResult:
        return quick_score(case.expected_findings, output.content)


class JudgeScorer:
    """LLM judge scorer. The judge (and its client) are stateless per call."""

    name = "judge"

    def __init__(self, judge: Judge) -> None:
        self._judge = judge

    async def score(self, case: EvaluationCase, output: ResearchOutput) -> JudgeResult:
        return await self._judge.judge(case, output)


def select_strategy(
    dry_run: bool,
    client_factory: Callable[[], object] | None = None,
    max_attempts: int | None = None,
) -> ScoringStrategy:
    """
    dry_run=True  → QuickScorer (no client is created)
    dry_run=False → JudgeScorer around a client from client_factory
                    (defaults to LLMClient, imported lazily so dry runs
                    don't need Azure credentials configured)
    """
    if dry_run:
        return QuickScorer()

    if client_factory is None:
        from llm.client import LLMClient
        client_factory = LLMClient
    if max_attempts is None:
        from config import settings
        max_attempts = settings.judge_max_attempts

    return JudgeScorer(Judge(client=client_factory(), max_attempts=max_attempts))
