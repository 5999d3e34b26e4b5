"""
config.py — Single source of truth for all evaluation harness settings.

pydantic-settings reads .env at import time, validates types and ranges,
and exposes one typed settings object everywhere.

THE SETTINGS FALL INTO FOUR GROUPS:

  1. Judge transport (Azure AI Foundry):
       Only needed when scoring with the LLM judge. A dry run (quick score)
       never touches the network, so foundry_endpoint may stay empty.

  2. Batch selection:
       DRY_RUN, FILTER and CASE_ID are the knobs people flip from the shell:
         DRY_RUN=1 python -m evals.runner
         CASE_ID=sys-001 python -m evals.runner
         FILTER=sys- python -m evals.runner

  3. Research agent process:
       The command that gets the task prompt as its last argument, the
       output subdirectory it writes into, and the per-case time budget.
       Each case spawns a heavyweight process, so concurrency stays small.

  4. Scoring and observability:
       pass_threshold matches the floor of the judge's "good" rubric band.
       log_dir is where batch traces are written.

USAGE:
  from config import settings
  print(settings.max_concurrency)       # 2
  print(settings.case_timeout_seconds)  # 300.0
  print(settings.dry_run)               # False
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Azure AI Foundry (judge transport) ────────────────────────────────────
    foundry_endpoint: str = Field(
        default="",
        description="Full Foundry project endpoint URL — required for judge mode only",
    )
    foundry_api_key: str = Field(
        default="",
        description="API key — leave blank to use DefaultAzureCredential",
    )
    api_version: str = Field(
        default="2025-04-01-preview",
        description="Azure OpenAI API version for cognitiveservices endpoints",
    )

    # ── Judge ─────────────────────────────────────────────────────────────────
    # The judge reads the whole research document plus the rubric, so it
    # gets the high-quality model. One call per case.
    judge_model: str = Field(
        default="gpt-5.2-chat",
        description="Model used as the grader",
    )
    judge_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Transport timeout for one judge call",
    )
    judge_transport_retries: int = Field(
        default=2,
        ge=0,
        description="Retries the OpenAI client performs on connection errors / 429 / 5xx",
    )
    judge_max_attempts: int = Field(
        default=1,
        ge=1,
        le=5,
        description="Attempts the judge protocol makes when a reply has no valid JSON",
    )

    # ── Batch selection ───────────────────────────────────────────────────────
    cases_path: str = Field(
        default="evals/cases.json",
        description="Path to the case-set JSON document",
    )
    dry_run: bool = Field(
        default=False,
        description="Score with the deterministic quick scorer instead of the LLM judge",
    )
    filter: str = Field(
        default="",
        description="Run only cases whose id starts with this value or whose domain equals it",
    )
    case_id: str = Field(
        default="",
        description="Run only the case with this exact id — fails the run if unmatched",
    )

    # ── Research agent process ────────────────────────────────────────────────
    agent_command: str = Field(
        default="research-agent",
        description="Command line of the research agent; the task prompt is appended as the last argument",
    )
    agent_output_dir: str = Field(
        default="research",
        description="Subdirectory of the workspace the agent writes its document into",
    )
    agent_output_glob: str = Field(
        default="*.md",
        description="Pattern for research documents under agent_output_dir",
    )
    max_concurrency: int = Field(
        default=2,
        ge=1,
        le=16,
        description="Max simultaneous case-runs (each one is a full agent process)",
    )
    case_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Per-case time budget — exceeded = process killed, case recorded as timeout",
    )

    # ── Scoring ───────────────────────────────────────────────────────────────
    pass_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum overall score for a case-run to count as a pass",
    )

    # ── Observability ─────────────────────────────────────────────────────────
    log_dir: str = Field(
        default="logs/",
        description="Directory for structured JSON batch traces",
    )


# Module-level singleton — import this everywhere, never instantiate Settings again.
settings = Settings()
