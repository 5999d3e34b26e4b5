"""
evals/runner.py — Run a batch of evaluation cases and report scores.

WHAT THIS DOES:
  For each selected case:
    1. Build the task prompt from hypothesis + context (never the known answer)
    2. Run the research agent in a fresh workspace (tools/research_agent.py)
    3. Score the document with the batch's strategy (quick or judge)
    4. Turn the result into named metrics and hand them to the score sink
    5. Print a progress line: case id, elapsed, exit code, score

  Up to --concurrency case-runs are in flight at once (default 2 — each one
  is a full agent process). A case that fails or times out is recorded with
  a zero score and its error; the rest of the batch carries on.

  This is NOT a regression test (it runs a real agent and takes minutes).

HOW TO USE:

  Run all cases with the LLM judge:
    python -m evals.runner

  Quick heuristic scoring, no judge calls:
    DRY_RUN=1 python -m evals.runner
    python -m evals.runner --dry-run

  One case by id (fails if the id doesn't exist):
    CASE_ID=sys-002 python -m evals.runner

  All cases whose id starts with "sys-", or whose domain is "systems":
    FILTER=sys- python -m evals.runner
    python -m evals.runner --filter systems

  Save full results to JSON:
    python -m evals.runner --output results.json

OUTPUT:
  Per-case lines as each case completes:
    [1/5] sys-001  SCORED   42.3s  exit=0  score=0.820  PASS
          must 3/3   should 1/2   keywords 0.800

  Summary table at the end, then the trace path:
    Case            Status    Must   Should  Keywords  Overall  Pass
    sys-001         SCORED    1.000  0.500   0.800     0.820    1
    ...
    AVERAGE                   0.867  0.433   0.760     0.741    0.600
"""

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path
from typing import Callable

# Ensure the project root is on sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import settings
from evals.dataset import EvaluationCase, load_cases, select_cases
from evals.errors import AgentTimeoutError, HarnessError
from evals.metrics import case_metrics, summarize
from evals.scoring import ScoringStrategy, select_strategy
from evals.state import CaseRun, JudgeResult, ResearchOutput, RunStatus
from observability.tracer import ScoreSink, Tracer
from prompts.research import RESEARCH_TASK_PROMPT
from tools.research_agent import ResearchAgent


# ── ANSI colours (stripped when not a TTY) ────────────────────────────────────

def _colour(text: str, code: str) -> str:
    if sys.stdout.isatty():
        return f"\033[{code}m{text}\033[0m"
    return text

GREEN  = lambda t: _colour(t, "32")
YELLOW = lambda t: _colour(t, "33")
RED    = lambda t: _colour(t, "31")
BOLD   = lambda t: _colour(t, "1")
DIM    = lambda t: _colour(t, "2")


def _status_colour(status: RunStatus) -> str:
    if status == RunStatus.SCORED:
        return GREEN(status.value.upper())
    if status == RunStatus.TIMEOUT:
        return YELLOW(status.value.upper())
    return RED(status.value.upper())


def _score_colour(score: float) -> str:
    text = f"{score:.3f}"
    if score >= settings.pass_threshold:
        return GREEN(text)
    if score >= 0.5:
        return YELLOW(text)
    return RED(text)


# ── Per-case runner ───────────────────────────────────────────────────────────

def build_task_prompt(case: EvaluationCase, output_dir: str | None = None) -> str:
    """The research agent's prompt. Hypothesis and context only."""
    return RESEARCH_TASK_PROMPT.format(
        hypothesis=case.hypothesis,
        context=case.context,
        output_dir=output_dir or settings.agent_output_dir,
    )


async def run_case(
    case: EvaluationCase,
    *,
    agent,
    strategy: ScoringStrategy,
    tracer: Tracer,
    sink: ScoreSink | None = None,
    threshold: float | None = None,
) -> CaseRun:
    """
    One case-run: agent → scorer → metrics → sink.

    Never raises for per-case problems. Agent failures, timeouts, judge
    protocol errors and transport errors all become a CaseRun with a zero
    JudgeResult and the error recorded.

    agent needs an async run(prompt) -> ResearchOutput method.
    """
    start = time.monotonic()
    prompt = build_task_prompt(case, getattr(agent, "output_dir", None))

    output: ResearchOutput | None = None
    result: JudgeResult | None = None
    status = RunStatus.SCORED
    error = ""

    try:
        with tracer.span("agent", case_id=case.id) as span:
            output = await agent.run(prompt)
            span.metadata["exit_code"] = output.exit_code
            span.metadata["duration_ms"] = output.duration_ms
            span.metadata["content_chars"] = len(output.content)
            span.metadata["file_path"] = output.file_path or ""

        with tracer.span("score", case_id=case.id) as span:
            span.metadata["strategy"] = strategy.name
            result = await strategy.score(case, output)
            span.metadata["score"] = result.score
            span.metadata["must_discover_hits"] = result.must_discover_hits
            span.metadata["should_discover_hits"] = result.should_discover_hits

    except AgentTimeoutError as e:
        status = RunStatus.TIMEOUT
        error = str(e)
    except HarnessError as e:
        status = RunStatus.FAILED
        error = f"{type(e).__name__}: {e}"
    except Exception as e:
        # Transport errors from the judge client, or anything unexpected.
        status = RunStatus.FAILED
        error = f"Unexpected error: {type(e).__name__}: {e}"

    if status != RunStatus.SCORED or result is None:
        result = JudgeResult.failed(case, error)

    metrics = case_metrics(
        case, result, mode=strategy.name, status=status, threshold=threshold
    )
    _emit(sink or tracer, metrics.case_id, metrics.scores, metrics.tags)

    return CaseRun(
        case=case,
        status=status,
        result=result,
        metrics=metrics,
        output=output,
        error=error,
        elapsed_sec=round(time.monotonic() - start, 1),
    )


async def run_batch(
    cases: list[EvaluationCase],
    *,
    agent,
    strategy: ScoringStrategy,
    tracer: Tracer | None = None,
    sink: ScoreSink | None = None,
    max_concurrency: int = 2,
    threshold: float | None = None,
    on_result: Callable[[CaseRun], None] | None = None,
) -> list[CaseRun]:
    """
    Run every case with at most max_concurrency in flight.

    Returns CaseRuns in the same order as cases, whatever order they
    finished in. on_result is called as each case completes.
    """
    if max_concurrency < 1:
        raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
    if tracer is None:
        tracer = Tracer(mode=strategy.name)

    semaphore = asyncio.Semaphore(max_concurrency)

    async def limited(case: EvaluationCase) -> CaseRun:
        async with semaphore:
            run = await run_case(
                case,
                agent=agent,
                strategy=strategy,
                tracer=tracer,
                sink=sink,
                threshold=threshold,
            )
        if on_result:
            on_result(run)
        return run

    return list(await asyncio.gather(*(limited(c) for c in cases)))


def _emit(sink: ScoreSink, case_id: str, scores: dict[str, float], tags: dict[str, str]) -> None:
    for name, value in scores.items():
        try:
            sink.record_score(case_id, name, value, tags)
        except Exception as e:
            _log(f"{case_id}: could not record {name}={value}: {type(e).__name__}: {e}")


# ── Progress output ───────────────────────────────────────────────────────────

def _progress_printer(total: int, verbose: bool) -> Callable[[CaseRun], None]:
    done = 0

    def on_result(run: CaseRun) -> None:
        nonlocal done
        done += 1
        r = run.result
        exit_code = run.output.exit_code if run.output else "-"
        verdict = GREEN("PASS") if run.metrics.scores["pass"] else RED("FAIL")
        print(
            f"{BOLD(f'[{done}/{total}]')} {run.case_id:<14}  "
            f"{_status_colour(run.status):<8}  {run.elapsed_sec:>6.1f}s  "
            f"exit={exit_code}  score={_score_colour(r.score)}  {verdict}"
        )
        print(
            DIM(
                f"       must {r.must_discover_hits}/{r.must_discover_total}   "
                f"should {r.should_discover_hits}/{r.should_discover_total}   "
                f"keywords {r.keyword_coverage:.3f}"
            )
        )
        if run.error:
            print(RED(f"       ERROR: {run.error}"))
        if verbose:
            if r.reasoning:
                print(DIM(f"       ↳ {r.reasoning}"))
            for w in r.weaknesses:
                print(DIM(f"       - {w}"))

    return on_result


# ── Summary table ─────────────────────────────────────────────────────────────

def _print_summary(runs: list[CaseRun], summary: dict) -> None:
    """Print a compact summary table of all case-runs."""
    if not runs:
        return

    print("\n" + BOLD("─" * 78))
    print(BOLD("SUMMARY"))
    print(BOLD("─" * 78))

    header = (
        f"  {'Case':<16}  {'Status':<8}  {'Must':>6}  {'Should':>6}  "
        f"{'Keywords':>8}  {'Overall':>7}  {'Pass':>4}"
    )
    print(header)
    print("  " + "─" * 74)

    for run in runs:
        m = run.metrics.scores
        print(
            f"  {run.case_id[:16]:<16}  {run.status.value.upper():<8}  "
            f"{_score_colour(m['must_discover_rate']):>6}  "
            f"{_score_colour(m['should_discover_rate']):>6}  "
            f"{_score_colour(m['keyword_coverage']):>8}  "
            f"{_score_colour(m['overall_score']):>7}  "
            f"{int(m['pass']):>4}"
        )

    print("  " + "─" * 74)
    print(
        f"  {'AVERAGE':<16}  {'':8}  "
        f"{_score_colour(summary['mean_must_discover_rate']):>6}  "
        f"{_score_colour(summary['mean_should_discover_rate']):>6}  "
        f"{_score_colour(summary['mean_keyword_coverage']):>8}  "
        f"{_score_colour(summary['mean_overall_score']):>7}  "
        f"{summary['pass_rate']:>4.2f}"
    )
    print(BOLD("─" * 78))
    print(f"\n  Average overall score: {BOLD(_score_colour(summary['mean_overall_score']))}")
    print(f"  Pass rate:             {summary['pass_rate']:.3f}")
    print(
        f"  Scored / failed / timeout: "
        f"{summary['scored']} / {summary['failed']} / {summary['timeout']}"
    )
    total_time = sum(r.elapsed_sec for r in runs)
    print(f"  Total case time:       {total_time:.1f}s\n")


# ── CLI ───────────────────────────────────────────────────────────────────────

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the research agent evaluation cases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--cases",
        default=settings.cases_path,
        help="Case-set JSON file (default: CASES_PATH or evals/cases.json)",
    )
    parser.add_argument(
        "--case-id",
        default=settings.case_id or None,
        help="Only run the case with this exact id (env: CASE_ID)",
    )
    parser.add_argument(
        "--filter",
        default=settings.filter or None,
        help="Only run cases whose id starts with, or whose domain equals, this value (env: FILTER)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=settings.dry_run,
        help="Use the quick heuristic scorer instead of the LLM judge (env: DRY_RUN)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.max_concurrency,
        help="Max simultaneous case-runs (env: MAX_CONCURRENCY)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.case_timeout_seconds,
        help="Per-case time budget in seconds (env: CASE_TIMEOUT_SECONDS)",
    )
    parser.add_argument(
        "--output",
        help="Save full results to this JSON file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print judge reasoning and weaknesses for each case",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    # Batch-level errors: nothing runs if the case set is bad or the id is unknown.
    try:
        case_set = load_cases(args.cases)
        cases = select_cases(case_set.cases, case_id=args.case_id, filter=args.filter)
    except (HarnessError, OSError) as e:
        print(RED(f"Error: {e}"))
        return 1

    if not cases:
        print(YELLOW(f"No cases match filter '{args.filter}'. Domains: {case_set.domains}"))
        return 0

    try:
        strategy = select_strategy(dry_run=args.dry_run)
    except ValueError as e:
        print(RED(f"Error: {e}"))
        return 1

    agent = ResearchAgent.from_settings(timeout_seconds=args.timeout)
    tracer = Tracer(mode=strategy.name)

    total = len(cases)
    print(BOLD(f"\nRunning {total} case(s) — mode: {strategy.name}, concurrency: {args.concurrency}"))

    runs = asyncio.run(
        run_batch(
            cases,
            agent=agent,
            strategy=strategy,
            tracer=tracer,
            max_concurrency=args.concurrency,
            on_result=_progress_printer(total, args.verbose),
        )
    )

    summary = summarize(runs)
    _print_summary(runs, summary)

    tracer.finish(summary)
    path = tracer.save()
    _log(f"Trace saved → {path}")

    if args.output:
        output_path = Path(args.output)
        payload = {"mode": strategy.name, "summary": summary, "runs": [r.to_dict() for r in runs]}
        output_path.write_text(json.dumps(payload, indent=2))
        print(f"Results saved to {output_path}")

    return 0


def _log(message: str) -> None:
    print(f"[eval-harness] {message}")


if __name__ == "__main__":
    sys.exit(main())
