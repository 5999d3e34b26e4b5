"""
llm/client.py — The ONLY file that imports the Azure/OpenAI SDK.

The judge needs exactly one thing from an LLM: given a system instruction
and a user message, return the reply text. So this client has one API shape:

  await client.complete_async(system, user)  → Chat Completions → judge_model → str

Async only: every judge call happens inside the batch event loop, next to
the concurrently running agent processes.

WHY CHAT COMPLETIONS:
  Grading is stateless — no tool calls, no conversation chaining. Chat
  Completions returns text directly and works with every deployed model.

TIMEOUTS AND RETRIES LIVE HERE, NOT IN THE JUDGE:
  The OpenAI client already retries connection errors, 429s and 5xx with
  backoff. We configure it from settings (judge_transport_retries,
  judge_timeout_seconds) instead of wrapping calls in our own retry loop.
  Anything still failing after that propagates to the caller unmodified.

TWO AUTH PATHS:
  foundry_api_key set   → API key auth
  foundry_api_key empty → DefaultAzureCredential (managed identity / az login)

USAGE:
  from llm.client import LLMClient
  client = LLMClient()
  text = await client.complete_async(system="You are a grader.", user="Grade this: ...")
"""

from openai import AsyncAzureOpenAI

from azure.identity import DefaultAzureCredential, get_bearer_token_provider

from config import settings


_COGNITIVE_SCOPE = "https://cognitiveservices.azure.com/.default"


class LLMClient:
    """
    Thin wrapper around Azure AI Foundry → Chat Completions.

    Built once per batch and handed to the Judge explicitly.
    Nothing else in the codebase holds a client.
    """

    def __init__(self, model: str | None = None) -> None:
        if not settings.foundry_endpoint:
            raise ValueError(
                "FOUNDRY_ENDPOINT is not set — required for judge scoring. "
                "Set it in .env, or use DRY_RUN=1 for quick scoring."
            )

        common = dict(
            azure_endpoint=settings.foundry_endpoint,
            api_version=settings.api_version,
            timeout=settings.judge_timeout_seconds,
            max_retries=settings.judge_transport_retries,
        )

        if settings.foundry_api_key:
            # Path A: API key auth
            self._client = AsyncAzureOpenAI(api_key=settings.foundry_api_key, **common)
        else:
            # Path B: Managed identity / az login
            token_provider = get_bearer_token_provider(
                DefaultAzureCredential(), _COGNITIVE_SCOPE
            )
            self._client = AsyncAzureOpenAI(azure_ad_token_provider=token_provider, **common)

        self._model = model or settings.judge_model

    @property
    def model(self) -> str:
        return self._model

    async def complete_async(
        self,
        system: str,
        user: str,
        *,
        temperature: float | None = None,
    ) -> str:
        """
        One grading call. Returns the reply text ("" if the model sent none).

        Raises on API error — the caller decides what a failure means.
        """
        response = await self._client.chat.completions.create(
            **self._request(system, user, temperature)
        )
        return response.choices[0].message.content or ""

    def _request(self, system: str, user: str, temperature: float | None) -> dict:
        kwargs: dict = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        return kwargs
