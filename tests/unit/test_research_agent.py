"""
tests/unit/test_research_agent.py — Unit tests for tools/research_agent.py
and tools/workspace.py

Uses real child processes (the current Python interpreter with -c) as a
stand-in research agent. No network.

Covers: document from output file vs stdout fallback, non-zero exit,
        spawn errors, timeout kill, cancellation, workspace cleanup on
        every path, find_latest_output().
"""

import asyncio
import os
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from evals.errors import AgentInvocationError, AgentTimeoutError
from tools.research_agent import ResearchAgent, find_latest_output
from tools.workspace import prepare_workspace


# ── Helpers ───────────────────────────────────────────────────────────────────

def python_agent(script: str, timeout: float = 20.0) -> ResearchAgent:
    """An agent whose command is `python -c script`; the prompt lands in sys.argv[1]."""
    return ResearchAgent(command=[sys.executable, "-c", script], timeout_seconds=timeout)


WRITE_REPORT = (
    "import sys, pathlib\n"
    "pathlib.Path('research/report.md').write_text('# Report\\n' + sys.argv[1])\n"
    "print('progress chatter')\n"
)

RECORD_CWD_THEN_SLEEP = (
    "import os, sys, time\n"
    "open(sys.argv[1], 'w').write(os.getcwd())\n"
    "time.sleep(30)\n"
)


# ── prepare_workspace ─────────────────────────────────────────────────────────

class TestPrepareWorkspace:
    def test_creates_output_dir(self):
        with prepare_workspace(output_dir="research") as ws:
            assert ws.root.is_dir()
            assert ws.output_dir == ws.root / "research"
            assert ws.output_dir.is_dir()

    def test_removed_after_block(self):
        with prepare_workspace() as ws:
            (ws.output_dir / "file.md").write_text("x")
            root = ws.root
        assert not root.exists()

    def test_removed_on_exception(self):
        with pytest.raises(RuntimeError):
            with prepare_workspace() as ws:
                root = ws.root
                raise RuntimeError("boom")
        assert not root.exists()

    def test_fresh_dir_each_time(self):
        with prepare_workspace() as a, prepare_workspace() as b:
            assert a.root != b.root

    def test_mkdtemp_failure_is_invocation_error(self, monkeypatch):
        def fail(**kwargs):
            raise OSError("disk full")
        monkeypatch.setattr("tools.workspace.tempfile.mkdtemp", fail)
        with pytest.raises(AgentInvocationError, match="disk full"):
            with prepare_workspace():
                pass


# ── ResearchAgent.run ─────────────────────────────────────────────────────────

class TestResearchAgentRun:
    def test_reads_output_file(self):
        output = asyncio.run(python_agent(WRITE_REPORT).run("PROMPT_TEXT"))
        assert output.content == "# Report\nPROMPT_TEXT"
        assert output.file_path == os.path.join("research", "report.md")
        assert output.exit_code == 0
        assert "progress chatter" in output.stdout
        assert output.duration_ms > 0

    def test_falls_back_to_stdout(self):
        agent = python_agent("import sys; print('stdout document about ' + sys.argv[1])")
        output = asyncio.run(agent.run("docker"))
        assert output.content.strip() == "stdout document about docker"
        assert output.file_path is None

    def test_non_zero_exit_still_returns_document(self):
        script = WRITE_REPORT + "sys.exit(3)\n"
        output = asyncio.run(python_agent(script).run("p"))
        assert output.exit_code == 3
        assert output.content.startswith("# Report")

    def test_empty_output(self):
        output = asyncio.run(python_agent("pass").run("p"))
        assert output.content == ""
        assert output.exit_code == 0

    def test_stderr_captured(self):
        output = asyncio.run(python_agent("import sys; sys.stderr.write('warning!')").run("p"))
        assert output.stderr == "warning!"

    def test_newest_file_wins(self):
        script = (
            "import os, pathlib\n"
            "old = pathlib.Path('research/old.md'); old.write_text('old')\n"
            "os.utime(old, (1000, 1000))\n"
            "pathlib.Path('research/sub').mkdir()\n"
            "pathlib.Path('research/sub/new.md').write_text('new')\n"
        )
        output = asyncio.run(python_agent(script).run("p"))
        assert output.content == "new"

    def test_non_matching_files_ignored(self):
        script = "import pathlib; pathlib.Path('research/notes.txt').write_text('txt'); print('out')"
        output = asyncio.run(python_agent(script).run("p"))
        assert output.content.strip() == "out"

    def test_workspace_removed_after_run(self):
        output = asyncio.run(python_agent("import os; print(os.getcwd())").run("p"))
        assert not Path(output.content.strip()).exists()

    def test_spawn_error(self):
        agent = ResearchAgent(command=["/nonexistent/research-agent-binary"])
        with pytest.raises(AgentInvocationError, match="Could not start"):
            asyncio.run(agent.run("p"))

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            ResearchAgent(command=[])


class TestResearchAgentTimeout:
    def test_timeout_raises_and_cleans_up(self, tmp_path):
        marker = tmp_path / "cwd.txt"
        agent = python_agent(RECORD_CWD_THEN_SLEEP, timeout=1.5)

        start = time.monotonic()
        with pytest.raises(AgentTimeoutError) as exc_info:
            asyncio.run(agent.run(str(marker)))
        elapsed = time.monotonic() - start

        assert exc_info.value.timeout_seconds == 1.5
        assert elapsed < 10  # killed, not waited out
        assert marker.exists()
        assert not Path(marker.read_text()).exists()

    def test_cancellation_cleans_up(self, tmp_path):
        marker = tmp_path / "cwd.txt"
        agent = python_agent(RECORD_CWD_THEN_SLEEP, timeout=60)

        async def run_then_cancel():
            task = asyncio.create_task(agent.run(str(marker)))
            for _ in range(100):
                if marker.exists() and marker.read_text():
                    break
                await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run_then_cancel())
        assert not Path(marker.read_text()).exists()


# ── find_latest_output ────────────────────────────────────────────────────────

class TestFindLatestOutput:
    def test_missing_dir(self, tmp_path):
        assert find_latest_output(tmp_path / "nope") is None

    def test_empty_dir(self, tmp_path):
        assert find_latest_output(tmp_path) is None

    def test_picks_most_recent(self, tmp_path):
        a = tmp_path / "a.md"
        b = tmp_path / "b.md"
        a.write_text("a")
        b.write_text("b")
        os.utime(a, (2000, 2000))
        os.utime(b, (1000, 1000))
        assert find_latest_output(tmp_path) == a

    def test_custom_pattern(self, tmp_path):
        (tmp_path / "report.txt").write_text("x")
        assert find_latest_output(tmp_path, "*.txt") == tmp_path / "report.txt"
        assert find_latest_output(tmp_path, "*.md") is None
