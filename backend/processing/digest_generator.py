"""
LLM-based digest content generation.

This module uses Ollama with local LLM inference to turn the regulatory updates
relevant to a schedule's recipient groups into a short digest:
- A 2-3 sentence overview leading with the most severe changes
- A handful of highlights, one per notable update

Updates are filtered by each group's severity/authority/update-type filters before
anything is sent to the model. When nothing passes the filters the digest is
written without an LLM call.
"""

import time
from typing import Callable, Protocol

from ollama import Client
from pydantic import BaseModel, Field

from models.digest import DigestContent, DigestContext, RegulatoryUpdate, Severity
from models.schedule import RecipientGroup
from shared.errors import ExecutionError

# LLM processing limits
MAX_PROMPT_CHARS = 100000  # Maximum update text length before truncation
MAX_LLM_RETRIES = 3  # Maximum retry attempts for failed LLM calls

# Retry truncation limit for prompts that fail due to length/token issues
RETRY_TRUNCATE_THRESHOLD = 50000  # Third attempt truncation length

NO_UPDATES_BODY = "No new regulatory updates matched this digest's filters since the last run."

UpdatesSource = Callable[[DigestContext], list[RegulatoryUpdate]]


class ContentGenerator(Protocol):
    def generate(self, context: DigestContext) -> DigestContent: ...


class DigestSummary(BaseModel):
    overview: str = Field(max_length=2000, description="2-3 sentence overview")
    highlights: list[str] = Field(
        default_factory=list, description="One short line per notable update"
    )


def call_llm(
    client: Client,
    model: str,
    prompt: str,
    schema: dict[str, object],
    temperature: float = 0,
    max_retries: int = MAX_LLM_RETRIES,
) -> str:
    """
    Call Ollama LLM with structured output validation and exponential backoff retry logic.

    Retries with exponential backoff (1s, 2s) on failure. On the third attempt, truncates
    the prompt to RETRY_TRUNCATE_THRESHOLD chars. Validates that responses are non-empty
    before returning.

    Args:
        client: Ollama client (carries its own request timeout)
        model: Ollama model name (e.g., "llama3.1:8b")
        prompt: Prompt text to send to the LLM
        schema: Pydantic model JSON schema for structured output format
        temperature: Sampling temperature (0 = deterministic, higher = more random)
        max_retries: Maximum retry attempts on failure

    Returns:
        JSON string response from LLM

    Raises:
        ExecutionError: If all retry attempts fail or LLM returns empty response
    """
    original_prompt = prompt

    for attempt in range(max_retries):
        try:
            # Truncate prompt on later attempts to avoid token limit issues
            if attempt == 2 and len(original_prompt) > RETRY_TRUNCATE_THRESHOLD:
                prompt = original_prompt[:RETRY_TRUNCATE_THRESHOLD]
                print(
                    f"  ⚠ Truncating prompt: {len(original_prompt)} → {RETRY_TRUNCATE_THRESHOLD} chars"
                )

            response = client.chat(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                format=schema,
                options={
                    "temperature": temperature,
                },
            )
            content = response.message.content

            if not content or content.strip() == "":
                raise ValueError("LLM returned empty response")

            return content

        except Exception as e:
            if attempt < max_retries - 1:
                wait_time = 2**attempt
                print(f"  ⚠ Attempt {attempt + 1} failed: {e}. Retrying in {wait_time}s...")
                time.sleep(wait_time)
            else:
                raise ExecutionError(
                    f"LLM call failed after {max_retries} attempts: {e}",
                    {"model": model, "attempts": max_retries},
                ) from e

    raise ExecutionError("LLM call made no attempts", {"model": model, "attempts": max_retries})


def filter_updates(
    updates: list[RegulatoryUpdate], groups: list[RecipientGroup]
) -> list[RegulatoryUpdate]:
    """Keep updates accepted by at least one enabled group (all updates when there are no groups)."""
    enabled = [group for group in groups if group.enabled]
    if not enabled:
        return list(updates)
    return [
        update
        for update in updates
        if any(
            group.filters.accepts(update.severity.value, update.authority, update.update_type)
            for group in enabled
        )
    ]


def _format_update(update: RegulatoryUpdate) -> str:
    line = f"- [{update.severity.value.upper()}] {update.title}"
    if update.authority:
        line += f" ({update.authority})"
    if update.summary:
        line += f": {update.summary}"
    return line


class OllamaDigestGenerator:
    """Writes digest bodies with a local Ollama model."""

    def __init__(
        self,
        updates_source: UpdatesSource,
        model: str = "llama3.1:8b",
        client: Client | None = None,
        host: str | None = None,
        timeout: float = 240.0,
        max_retries: int = MAX_LLM_RETRIES,
        max_chars: int = MAX_PROMPT_CHARS,
    ):
        self.updates_source = updates_source
        self.model = model
        # Sometimes Ollama calls hang indefinitely, so the client always carries a timeout
        self.client = client or Client(host=host, timeout=timeout)
        self.max_retries = max_retries
        self.max_chars = max_chars

    def generate(self, context: DigestContext) -> DigestContent:
        """
        Build digest content for one scheduled run.

        Raises:
            ExecutionError: If the LLM call fails after retries
        """
        updates = filter_updates(self.updates_source(context), context.groups)
        critical = sum(1 for update in updates if update.severity == Severity.CRITICAL)
        if not updates:
            print("  → No matching updates, skipping LLM call")
            return DigestContent(body=NO_UPDATES_BODY, items_included=0, critical_items=0)

        # Most severe first so truncation drops the least important items
        order = list(Severity)
        ranked = sorted(updates, key=lambda update: order.index(update.severity))
        update_text = "\n".join(_format_update(update) for update in ranked)
        if len(update_text) > self.max_chars:
            print(f"  ⚠ Truncated: {len(update_text)} → {self.max_chars} chars")
            update_text = update_text[: self.max_chars]

        prompt = f"""Write a short compliance digest for the recipients of "{context.schedule.name}".

Today's date: {context.generated_at.strftime("%Y-%m-%d")}

Lead with critical and high severity changes. Summarize the overall picture in 2-3 sentences,
then give one highlight line per notable update. Be concise and factual. Do not invent
deadlines, authorities or requirements that are not in the updates.

Updates:
{update_text}
"""
        print(f"  → Generating digest from {len(updates)} update(s)...")
        response = call_llm(
            self.client,
            self.model,
            prompt,
            DigestSummary.model_json_schema(),
            max_retries=self.max_retries,
        )
        try:
            summary = DigestSummary.model_validate_json(response)
        except ValueError as e:
            raise ExecutionError(f"LLM returned an invalid digest: {e}", {"model": self.model}) from e

        body = summary.overview.strip()
        if summary.highlights:
            body += "\n\n" + "\n".join(f"• {line.strip()}" for line in summary.highlights)
        print(f"  ✓ Digest: {len(updates)} item(s), {critical} critical")
        return DigestContent(body=body, items_included=len(updates), critical_items=critical)
