"""LLM-written session summaries via OpenAI-compatible chat completion APIs."""

import logging

import httpx

from clog.config import Config
from clog.embedding import truncate
from clog.models import StoredMessage

logger = logging.getLogger(__name__)

MAX_CONVERSATION_CHARS = 8000

SYSTEM_PROMPT = (
    "Summarize this Claude Code session in one concise paragraph. "
    "Focus on what was accomplished, not the process. "
    "Do not use markdown formatting in the summary."
)


class SummaryError(Exception):
    """A chat completion request failed."""


def build_prompt(messages: list[StoredMessage]) -> list[dict]:
    """System prompt plus the conversation as one user message, capped in size."""
    conversation = ""
    for m in messages:
        label = "Assistant" if m.role == "assistant" else "User"
        line = f"{label}: {m.content}\n\n"
        if len(conversation) + len(line) > MAX_CONVERSATION_CHARS:
            conversation += "... (truncated)\n"
            break
        conversation += line

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": conversation},
    ]


class Summarizer:
    def __init__(self, endpoint: str, model: str, api_key: str, timeout: float = 60.0,
                 client: httpx.Client | None = None):
        self.endpoint = endpoint
        self.model = model
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def summarize(self, messages: list[StoredMessage]) -> str:
        """Return a one-paragraph summary of *messages*."""
        try:
            resp = self._client.post(
                self.endpoint,
                json={"model": self.model, "messages": build_prompt(messages)},
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as e:
            raise SummaryError(f"chat completion request: {e}") from e

        if resp.status_code != 200:
            raise SummaryError(f"chat API returned {resp.status_code}: {truncate(resp.text, 200)}")

        try:
            choices = resp.json()["choices"]
        except (ValueError, KeyError, TypeError) as e:
            raise SummaryError(f"unmarshal response: {e}") from e
        if not choices:
            raise SummaryError("chat API returned no choices")

        try:
            return choices[0]["message"]["content"].strip()
        except (KeyError, TypeError, AttributeError) as e:
            raise SummaryError(f"unexpected choice shape: {e}") from e

    def close(self):
        self._client.close()


def new_from_env(config: Config, client: httpx.Client | None = None) -> Summarizer | None:
    """Ollama chat model first, then OpenAI. None when neither is configured."""
    if config.ollama_chat_model:
        if not config.ollama_host:
            return None
        return Summarizer(
            endpoint=config.ollama_host.rstrip("/") + "/v1/chat/completions",
            model=config.ollama_chat_model,
            api_key="ollama",
            timeout=max(config.http_timeout, 120.0),
            client=client,
        )

    if config.openai_api_key:
        return Summarizer(
            endpoint="https://api.openai.com/v1/chat/completions",
            model="gpt-4o-mini",
            api_key=config.openai_api_key,
            timeout=config.http_timeout,
            client=client,
        )

    return None
