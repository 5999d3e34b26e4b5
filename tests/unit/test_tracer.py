"""
tests/unit/test_tracer.py — Unit tests for observability/tracer.py
"""

import json
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from observability.tracer import Span, Tracer


# ── Span ──────────────────────────────────────────────────────────────────────

class TestSpan:
    def test_finish_sets_duration(self):
        s = Span(name="agent", step=1, started_at=time.monotonic())
        time.sleep(0.01)
        s.finish()
        assert s.duration_ms > 5

    def test_finish_default_status_success(self):
        s = Span(name="agent", step=1, started_at=time.monotonic())
        s.finish()
        assert s.status == "success"

    def test_finish_error_status(self):
        s = Span(name="score", step=1, started_at=time.monotonic())
        s.finish(status="error", error="JudgeProtocolError: no JSON")
        assert s.status == "error"
        assert "JudgeProtocolError" in s.error


# ── Tracer.span() context manager ─────────────────────────────────────────────

class TestTracerSpan:
    def test_span_added_with_case_id(self):
        tracer = Tracer(mode="quick")
        with tracer.span("agent", case_id="sys-001"):
            pass
        spans = tracer._trace.spans
        assert len(spans) == 1
        assert spans[0].name == "agent"
        assert spans[0].case_id == "sys-001"
        assert spans[0].status == "success"

    def test_span_status_error_on_exception(self):
        tracer = Tracer(mode="quick")
        with pytest.raises(ValueError):
            with tracer.span("score", case_id="sys-001"):
                raise ValueError("bad reply")
        span = tracer._trace.spans[0]
        assert span.status == "error"
        assert "ValueError: bad reply" in span.error

    def test_metadata_can_be_set(self):
        tracer = Tracer(mode="quick")
        with tracer.span("agent") as span:
            span.metadata["exit_code"] = 0
        assert tracer._trace.spans[0].metadata == {"exit_code": 0}

    def test_step_counter_increments(self):
        tracer = Tracer(mode="judge")
        for name in ("agent", "score", "agent"):
            with tracer.span(name):
                pass
        assert [s.step for s in tracer._trace.spans] == [1, 2, 3]


# ── record_score ──────────────────────────────────────────────────────────────

class TestRecordScore:
    def test_appends(self):
        tracer = Tracer(mode="quick")
        tracer.record_score("sys-001", "overall_score", 0.82, {"domain": "systems"})
        [record] = tracer.scores
        assert record.case_id == "sys-001"
        assert record.name == "overall_score"
        assert record.value == 0.82
        assert record.tags == {"domain": "systems"}

    def test_tags_copied(self):
        tracer = Tracer(mode="quick")
        tags = {"domain": "systems"}
        tracer.record_score("sys-001", "pass", 1.0, tags)
        tags["domain"] = "changed"
        assert tracer.scores[0].tags["domain"] == "systems"

    @pytest.mark.parametrize("value", [-0.01, 1.5])
    def test_out_of_range_rejected(self, value):
        tracer = Tracer(mode="quick")
        with pytest.raises(ValueError):
            tracer.record_score("sys-001", "overall_score", value, {})
        assert tracer.scores == []

    def test_boundaries_accepted(self):
        tracer = Tracer(mode="quick")
        tracer.record_score("sys-001", "pass", 0.0, {})
        tracer.record_score("sys-001", "pass", 1.0, {})
        assert len(tracer.scores) == 2


# ── finish() / save() ─────────────────────────────────────────────────────────

class TestTracerFinishAndSave:
    def test_finish_sets_summary_and_status(self):
        tracer = Tracer(mode="quick")
        tracer.finish({"n_cases": 3, "pass_rate": 0.5})
        assert tracer._trace.status == "completed"
        assert tracer._trace.summary == {"n_cases": 3, "pass_rate": 0.5}
        assert tracer._trace.completed_at != ""
        assert tracer._trace.total_duration_ms >= 0

    def test_save_creates_file(self, tmp_path):
        tracer = Tracer(mode="quick", run_id="abc123")
        path = tracer.save(tmp_path / "traces")
        assert path == tmp_path / "traces" / "abc123.json"
        assert path.exists()

    def test_save_contents(self, tmp_path):
        tracer = Tracer(mode="judge", run_id="abc123")
        with tracer.span("agent", case_id="net-001") as span:
            span.metadata["exit_code"] = 1
        tracer.record_score("net-001", "overall_score", 0.4, {"mode": "judge"})
        tracer.finish({"n_cases": 1})

        data = json.loads(tracer.save(tmp_path).read_text())
        assert data["run_id"] == "abc123"
        assert data["mode"] == "judge"
        assert data["spans"][0]["case_id"] == "net-001"
        assert data["spans"][0]["metadata"]["exit_code"] == 1
        assert data["scores"][0] == {
            "case_id": "net-001",
            "name": "overall_score",
            "value": 0.4,
            "tags": {"mode": "judge"},
        }
        assert data["summary"] == {"n_cases": 1}

    def test_save_default_dir_from_settings(self, tmp_path, monkeypatch):
        from config import settings
        monkeypatch.setattr(settings, "log_dir", str(tmp_path))
        path = Tracer(mode="quick", run_id="xyz").save()
        assert path == tmp_path / "traces" / "xyz.json"

    def test_run_id_generated_if_not_provided(self):
        a, b = Tracer(mode="quick"), Tracer(mode="quick")
        assert len(a.run_id) == 12
        assert a.run_id != b.run_id
