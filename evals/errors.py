"""
evals/errors.py — Every error the harness raises on purpose.

Two scopes:

  Batch-level (raised before any case-run starts, abort the whole batch):
    ValidationError  — the case-set document is malformed
    NotFoundError    — CASE_ID names a case that doesn't exist

  Case-level (caught at the case boundary by the runner, recorded as a
  zero score for that one case, never propagated to sibling cases):
    AgentInvocationError — workspace couldn't be prepared or process didn't spawn
    AgentTimeoutError    — the agent blew its time budget and was killed
    JudgeProtocolError   — the judge reply had no valid JudgeResult JSON
"""


class HarnessError(Exception):
    """Base class for all harness errors."""


# ── Batch-level ───────────────────────────────────────────────────────────────

class ValidationError(HarnessError):
    """The case-set document doesn't match the required shape."""


class NotFoundError(HarnessError):
    """A requested case id matched nothing in the loaded set."""


# ── Case-level ────────────────────────────────────────────────────────────────

class AgentInvocationError(HarnessError):
    """The research agent couldn't be started, or its workspace couldn't be prepared."""


class AgentTimeoutError(HarnessError):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Research agent timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class JudgeProtocolError(HarnessError):
    """
    The judge reply couldn't be turned into a JudgeResult.

    raw_reply keeps the text exactly as the judge sent it, for debugging.
    """

    def __init__(self, message: str, raw_reply: str = "") -> None:
        super().__init__(message)
        self.raw_reply = raw_reply
