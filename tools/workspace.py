"""
tools/workspace.py — Isolated, throwaway working directory per case-run.

Every case-run gets a fresh temp directory with the agent's output
subdirectory already created (the agent expects to find it). The directory
is removed when the with-block exits — normal completion, timeout, spawn
error, or cancellation. No case-run ever sees another's files.

USAGE:
  from tools.workspace import prepare_workspace

  with prepare_workspace(output_dir="research") as ws:
      ...  # run the agent with cwd=ws.root, read from ws.output_dir
  # ws.root no longer exists here
"""

import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from evals.errors import AgentInvocationError


@dataclass(frozen=True)
class Workspace:
    root: Path
    output_dir: Path


@contextmanager
def prepare_workspace(output_dir: str = "research", prefix: str = "research-eval-"):
    """
    Create a temp workspace, yield it, always remove it.

    Raises AgentInvocationError if the directory can't be created.
    """
    try:
        root = Path(tempfile.mkdtemp(prefix=prefix))
    except OSError as e:
        raise AgentInvocationError(f"Could not create workspace: {e}") from e

    try:
        out = root / output_dir
        try:
            out.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AgentInvocationError(f"Could not prepare workspace {root}: {e}") from e
        yield Workspace(root=root, output_dir=out)
    finally:
        shutil.rmtree(root, ignore_errors=True)
