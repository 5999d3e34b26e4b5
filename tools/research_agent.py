"""
tools/research_agent.py — Run the external research agent for one prompt.

THE BOUNDARY:
  In:  one free-text task prompt
  Out: ResearchOutput(content, exit_code, duration_ms, file_path, stdout, stderr)

  The agent is a separate program (AGENT_COMMAND). We spawn it with the
  prompt as its last argument, cwd set to a fresh workspace, and wait.

WHERE THE DOCUMENT COMES FROM:
  The agent is told to write Markdown into the workspace's output
  subdirectory. After it exits we take the most recently modified file
  matching AGENT_OUTPUT_GLOB (searched recursively). If there is none, the
  agent's stdout is the document. Either way, it may be empty.

FAILURE MODES:
  non-zero exit  → NOT an error. The agent may have written a perfectly
                   good document and then crashed on cleanup. We score it.
  spawn error    → AgentInvocationError (command not found, not executable)
  time budget    → AgentTimeoutError. The process is killed first.

ONE DEADLINE, ONE KILL PATH:
  asyncio.wait_for around process.communicate() is the whole timeout
  mechanism. Whatever ends the wait — timeout, cancellation from outside,
  or a bug — the finally block kills the process if it's still alive, and
  the workspace context manager removes the directory.

USAGE:
  agent = ResearchAgent.from_settings()
  output = await agent.run("Research the hypothesis: ...")
  print(output.exit_code, len(output.content))
"""

import asyncio
import shlex
import time
from pathlib import Path

from config import settings
from evals.errors import AgentInvocationError, AgentTimeoutError
from evals.state import ResearchOutput
from tools.workspace import prepare_workspace


# Keep this much of stdout/stderr on the output for diagnostics.
_TAIL_CHARS = 2000


class ResearchAgent:
    """Spawns the research agent in an isolated workspace, one prompt at a time."""

    def __init__(
        self,
        command: list[str],
        timeout_seconds: float = 300.0,
        output_dir: str = "research",
        output_glob: str = "*.md",
    ) -> None:
        if not command:
            raise ValueError("Research agent command is empty")
        self.command = list(command)
        self.timeout_seconds = timeout_seconds
        self.output_dir = output_dir
        self.output_glob = output_glob

    @classmethod
    def from_settings(cls, timeout_seconds: float | None = None) -> "ResearchAgent":
        return cls(
            command=shlex.split(settings.agent_command),
            timeout_seconds=timeout_seconds or settings.case_timeout_seconds,
            output_dir=settings.agent_output_dir,
            output_glob=settings.agent_output_glob,
        )

    async def run(self, prompt: str) -> ResearchOutput:
        """
        Run the agent once and collect its document.

        Workspace creation → spawn → wait → read output → workspace removal,
        in that order, with removal guaranteed.
        """
        with prepare_workspace(output_dir=self.output_dir) as ws:
            start = time.monotonic()
            stdout, stderr, exit_code = await self._execute(prompt, ws.root)
            duration_ms = round((time.monotonic() - start) * 1000, 2)

            document = find_latest_output(ws.output_dir, self.output_glob)
            if document is not None:
                content = document.read_text(encoding="utf-8", errors="replace")
                file_path = str(document.relative_to(ws.root))
            else:
                content = stdout
                file_path = None

        return ResearchOutput(
            content=content,
            exit_code=exit_code,
            duration_ms=duration_ms,
            file_path=file_path,
            stdout=stdout[-_TAIL_CHARS:],
            stderr=stderr[-_TAIL_CHARS:],
        )

    async def _execute(self, prompt: str, cwd: Path) -> tuple[str, str, int]:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                prompt,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AgentInvocationError(
                f"Could not start research agent {self.command[0]!r}: {e}"
            ) from e

        try:
            out, err = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            raise AgentTimeoutError(self.timeout_seconds) from None
        finally:
            if process.returncode is None:
                await _kill(process)

        return (
            out.decode("utf-8", errors="replace"),
            err.decode("utf-8", errors="replace"),
            process.returncode,
        )


def find_latest_output(output_dir: Path, pattern: str = "*.md") -> Path | None:
    """Most recently modified file matching pattern under output_dir, or None."""
    if not output_dir.is_dir():
        return None
    files = [p for p in output_dir.rglob(pattern) if p.is_file()]
    if not files:
        return None
    return max(files, key=lambda p: p.stat().st_mtime)


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill and reap. Safe if the process already exited."""
    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()
