"""
evals/judge.py — LLM-as-judge scoring: prompt in, validated JudgeResult out.

THE CONTRACT:
  1. Build one grading request from the case's full rubric, the known
     answer (the judge sees it, the research agent never does), and the
     research document.
  2. Send it to the completion client — passed in, never a global, so
     tests can hand in a fake.
  3. Pull the JSON object out of the reply and validate it against the
     full JudgeResult schema in strict mode, then check the reported
     totals against the case's own rubric counts.

  Any reply that isn't text, has no JSON object, or doesn't validate is a
  JudgeProtocolError. There is no fallback to the quick score: a judge
  failure is a judge failure, and the case-run records it as such.

FINDING THE JSON:
  Models wrap JSON in prose or ```json fences more often than they should.
  We take the span from the first "{" to the last "}" and parse it. If that
  doesn't parse (say, trailing prose containing braces), we fall back to the
  first balanced {...} span, tracking string literals so a "}" inside a
  reasoning string doesn't end the object early.

RETRIES:
  The transport (llm/client.py) handles timeouts and network retries.
  This layer makes max_attempts tries (default 1 — no retry) and only
  retries malformed replies. Transport errors propagate on first occurrence.

USAGE:
  from evals.judge import Judge
  from llm.client import LLMClient

  judge = Judge(client=LLMClient())
  result = await judge.judge(case, output)
  print(result.score, result.reasoning)
"""

import json

import pydantic

from evals.dataset import EvaluationCase
from evals.errors import JudgeProtocolError
from evals.state import JudgeResult, ResearchOutput
from prompts.judge import JUDGE_REQUEST_PROMPT, JUDGE_SYSTEM_PROMPT


EMPTY_DOCUMENT_PLACEHOLDER = "(the research agent produced no document)"


# ── Prompt construction ───────────────────────────────────────────────────────

def build_judge_request(case: EvaluationCase, output: ResearchOutput) -> str:
    """The per-case user message. Sections appear in a fixed order."""
    findings = case.expected_findings
    return JUDGE_REQUEST_PROMPT.format(
        hypothesis=case.hypothesis,
        context=case.context,
        must_discover=_numbered(findings.must_discover),
        should_discover=_numbered(findings.should_discover),
        keywords=", ".join(findings.keywords),
        known_answer=case.known_answer_summary,
        document=output.content or EMPTY_DOCUMENT_PLACEHOLDER,
        must_total=len(findings.must_discover),
        should_total=len(findings.should_discover),
    )


def build_judge_messages(case: EvaluationCase, output: ResearchOutput) -> tuple[str, str]:
    """(system, user) pair for the completion client."""
    return JUDGE_SYSTEM_PROMPT, build_judge_request(case, output)


# ── Response parsing ──────────────────────────────────────────────────────────

def extract_json_object(text: str) -> dict:
    """
    Locate and decode the JSON object in a free-form reply.

    Raises JudgeProtocolError when no object can be found or decoded.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise JudgeProtocolError("No JSON object in judge reply", raw_reply=text)

    candidates = [text[start : end + 1]]
    balanced = _balanced_span(text, start)
    if balanced is not None and balanced != candidates[0]:
        candidates.append(balanced)

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise JudgeProtocolError("Judge reply JSON could not be decoded", raw_reply=text)


def parse_judge_response(reply: object, case: EvaluationCase | None = None) -> JudgeResult:
    """
    Turn a raw judge reply into a validated JudgeResult.

    Rejects non-text replies, missing JSON, and schema mismatches
    (missing fields, unknown fields, wrong JSON types, out-of-range values,
    hits above totals). Validation is strict: "0.9" is not a score and
    true is not a coverage.

    With a case, the reported totals must also equal the case's own
    mustDiscover/shouldDiscover counts.
    """
    if not isinstance(reply, str):
        raise JudgeProtocolError(
            f"Judge reply is not text (got {type(reply).__name__})",
            raw_reply=repr(reply),
        )

    data = extract_json_object(reply)
    try:
        result = JudgeResult.model_validate(data, strict=True)
    except pydantic.ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors()})
        raise JudgeProtocolError(
            f"Judge reply failed schema validation: {fields}", raw_reply=reply
        ) from e

    if case is not None:
        _check_totals(case, result, reply)
    return result


# ── Judge ─────────────────────────────────────────────────────────────────────

class Judge:
    """
    Grades one research document per call.

    client needs a complete_async(system, user) -> str coroutine method.
    """

    def __init__(self, client, max_attempts: int = 1) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._client = client
        self._max_attempts = max_attempts

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def judge(self, case: EvaluationCase, output: ResearchOutput) -> JudgeResult:
        """
        Build the request, call the client, parse the reply.

        Raises JudgeProtocolError after max_attempts malformed replies.
        Transport exceptions propagate unmodified.
        """
        system, user = build_judge_messages(case, output)

        attempt = 1
        while True:
            reply = await self._client.complete_async(system=system, user=user)
            try:
                return parse_judge_response(reply, case)
            except JudgeProtocolError as e:
                if attempt >= self._max_attempts:
                    raise
                _log(f"{case.id}: malformed judge reply (attempt {attempt}) — {e}")
            attempt += 1


# ── Private helpers ───────────────────────────────────────────────────────────

def _check_totals(case: EvaluationCase, result: JudgeResult, reply: str) -> None:
    findings = case.expected_findings
    expected = {
        "mustDiscoverTotal": (result.must_discover_total, len(findings.must_discover)),
        "shouldDiscoverTotal": (result.should_discover_total, len(findings.should_discover)),
    }
    for name, (got, want) in expected.items():
        if got != want:
            raise JudgeProtocolError(
                f"Judge reply {name}={got} but case {case.id} has {want}",
                raw_reply=reply,
            )


def _numbered(items: list[str]) -> str:
    if not items:
        return "(none)"
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, 1))


def _balanced_span(text: str, start: int) -> str | None:
    """The {...} span starting at text[start] with balanced braces, or None."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _log(message: str) -> None:
    print(f"[eval-judge] {message}")
