"""
observability/tracer.py — Span tracing and score recording for one batch.

THE CORE CONCEPT:
  Every meaningful step of every case-run is a Span: a named unit of work
  with a start time, end time, status, the case it belongs to, and a
  metadata dict.

  Every metric the harness emits is a ScoreRecord: a named value in [0, 1]
  for one case-run plus slicing tags (domain, difficulty, mode, status).

  A Trace collects both for one batch and is saved to disk as JSON, giving
  a permanent record of what ran, how long each agent invocation took,
  which judge calls failed and why, and every score that came out.

WHY THE TRACER IS ALSO THE SCORE SINK:
  The harness hands scores to anything with a record_score() method
  (ScoreSink). A real experiment tracker can be plugged in there; by
  default the Tracer plays that role and the scores land in the trace file.

WHAT GETS TRACED (per case):
  - agent   → exit_code, duration_ms, content_chars, file_path
  - score   → strategy, score, must/should hits
  - batch   → mode, n_cases, summary means, total duration

CONCURRENCY:
  Case-runs interleave on one event loop. Spans carry case_id so the
  trace can be read per case even though steps are appended in completion
  order.

USAGE:
  tracer = Tracer(mode="quick")

  with tracer.span("agent", case_id="sys-001") as span:
      output = await agent.run(prompt)
      span.metadata["exit_code"] = output.exit_code

  tracer.record_score("sys-001", "overall_score", 0.82, {"domain": "systems"})
  tracer.finish(summary)
  path = tracer.save()
"""

import json
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol


# ── Sink interface ────────────────────────────────────────────────────────────

class ScoreSink(Protocol):
    def record_score(
        self, case_id: str, name: str, value: float, tags: dict[str, str]
    ) -> None:
        ...


# ── Span ──────────────────────────────────────────────────────────────────────

@dataclass
class Span:
    """
    One named step in one case-run.

    status is "success" or "error".
    metadata holds step-specific data (exit_code, score, etc.).
    """
    name: str
    step: int
    started_at: float       # time.monotonic() — for duration math
    case_id: str = ""
    ended_at: float = 0.0
    duration_ms: float = 0.0
    status: str = "success"
    metadata: dict = field(default_factory=dict)
    error: str = ""

    def finish(self, status: str = "success", error: str = "") -> None:
        self.ended_at = time.monotonic()
        self.duration_ms = round((self.ended_at - self.started_at) * 1000, 2)
        self.status = status
        self.error = error


# ── ScoreRecord ───────────────────────────────────────────────────────────────

@dataclass
class ScoreRecord:
    case_id: str
    name: str
    value: float
    tags: dict = field(default_factory=dict)


# ── Trace ─────────────────────────────────────────────────────────────────────

@dataclass
class Trace:
    """
    Complete record of one batch: spans, scores, and summary.

    Saved to {log_dir}/traces/{run_id}.json after the batch completes.
    """
    run_id: str
    mode: str
    started_at: str         # ISO timestamp
    completed_at: str = ""
    spans: list[Span] = field(default_factory=list)
    scores: list[ScoreRecord] = field(default_factory=list)

    # Filled by finish()
    status: str = "running"
    summary: dict = field(default_factory=dict)
    total_duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


# ── Tracer ────────────────────────────────────────────────────────────────────

class Tracer:
    """
    Collects spans and scores for one batch and saves the trace to disk.

    On error inside a span's with-block: span status is set to "error"
    and the exception is re-raised — the tracer never swallows errors.
    """

    def __init__(self, mode: str, run_id: str | None = None) -> None:
        self._run_id = run_id or uuid.uuid4().hex[:12]
        self._started = time.monotonic()
        self._trace = Trace(
            run_id=self._run_id,
            mode=mode,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        self._step_counter = 0

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def scores(self) -> list[ScoreRecord]:
        return list(self._trace.scores)

    @contextmanager
    def span(self, name: str, case_id: str = ""):
        """
        Context manager that creates, times, and closes a span.

        Usage:
            with tracer.span("score", case_id=case.id) as span:
                result = await strategy.score(case, output)
                span.metadata["score"] = result.score

        On exception: span is marked "error", exception is re-raised.
        """
        self._step_counter += 1
        s = Span(
            name=name,
            step=self._step_counter,
            started_at=time.monotonic(),
            case_id=case_id,
        )
        self._trace.spans.append(s)
        try:
            yield s
            s.finish(status="success")
        except BaseException as exc:
            s.finish(status="error", error=f"{type(exc).__name__}: {exc}")
            raise

    def record_score(
        self, case_id: str, name: str, value: float, tags: dict[str, str]
    ) -> None:
        """ScoreSink implementation — append one named score to the trace."""
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"Score {name}={value} for {case_id} is outside [0, 1]")
        self._trace.scores.append(
            ScoreRecord(case_id=case_id, name=name, value=value, tags=dict(tags))
        )

    def finish(self, summary: dict) -> None:
        """
        Populate summary stats from the batch roll-up.
        Call this after all case-runs are done.
        """
        elapsed = time.monotonic() - self._started
        self._trace.completed_at = datetime.now(timezone.utc).isoformat()
        self._trace.total_duration_ms = round(elapsed * 1000, 2)
        self._trace.status = "completed"
        self._trace.summary = dict(summary)

    def save(self, log_dir: Path | None = None) -> Path:
        """
        Write the trace to {log_dir}/{run_id}.json.
        Defaults to {settings.log_dir}/traces. Creates the directory if needed.
        """
        if log_dir is None:
            from config import settings
            log_dir = Path(settings.log_dir) / "traces"
        log_dir.mkdir(parents=True, exist_ok=True)

        path = log_dir / f"{self._run_id}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self._trace.to_dict(), f, indent=2, default=str)

        return path
