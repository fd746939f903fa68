"""Vector embeddings for semantic search via OpenAI-compatible APIs."""

import logging
from dataclasses import dataclass, replace

import httpx

from clog.config import Config

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """An embedding request failed or no provider is configured."""


@dataclass(frozen=True)
class Provider:
    name: str
    endpoint: str
    model: str
    dimension: int = 0
    env_key: str = ""


VOYAGE = Provider(
    name="Voyage AI",
    endpoint="https://api.voyageai.com/v1/embeddings",
    model="voyage-3-lite",
    dimension=1024,
    env_key="VOYAGE_API_KEY",
)

OPENAI = Provider(
    name="OpenAI",
    endpoint="https://api.openai.com/v1/embeddings",
    model="text-embedding-3-small",
    dimension=1536,
    env_key="OPENAI_API_KEY",
)


def truncate(s: str, max_len: int) -> str:
    if len(s) <= max_len:
        return s
    return s[:max_len] + "..."


class HTTPEmbedder:
    """Calls an OpenAI-compatible /embeddings endpoint."""

    def __init__(self, provider: Provider, api_key: str, timeout: float = 60.0,
                 client: httpx.Client | None = None):
        self.provider = provider
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def dimension(self) -> int:
        return self.provider.dimension

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in input order."""
        try:
            resp = self._client.post(
                self.provider.endpoint,
                json={"input": texts, "model": self.provider.model},
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as e:
            raise EmbeddingError(f"request to {self.provider.name}: {e}") from e

        if resp.status_code != 200:
            raise EmbeddingError(
                f"{self.provider.name} API returned {resp.status_code}: "
                f"{truncate(resp.text, 200)}"
            )

        try:
            data = resp.json()["data"]
            return [[float(x) for x in item["embedding"]] for item in data]
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingError(f"unmarshal response: {e}") from e

    def close(self):
        self._client.close()


def _new_ollama(config: Config, client: httpx.Client | None = None) -> HTTPEmbedder:
    """Embedder for a local Ollama; the dimension is found by probing the model."""
    if not config.ollama_host:
        raise EmbeddingError("OLLAMA_HOST is not set")

    provider = Provider(
        name="Ollama",
        endpoint=config.ollama_host.rstrip("/") + "/v1/embeddings",
        model=config.ollama_embed_model,
    )
    # Ollama ignores the auth header
    emb = HTTPEmbedder(provider, "ollama", timeout=config.http_timeout, client=client)

    try:
        vectors = emb.embed(["hello"])
    except EmbeddingError as e:
        raise EmbeddingError(f"ollama dimension check ({config.ollama_embed_model}): {e}") from e
    if not vectors or not vectors[0]:
        raise EmbeddingError("ollama dimension check returned empty embedding")

    emb.provider = replace(provider, dimension=len(vectors[0]))
    logger.info("Ollama model %s has dimension %d", provider.model, emb.dimension)
    return emb


def new_from_env(config: Config, client: httpx.Client | None = None) -> HTTPEmbedder:
    """Pick a provider: OLLAMA_EMBED_MODEL, then VOYAGE_API_KEY, then OPENAI_API_KEY."""
    if config.ollama_embed_model:
        return _new_ollama(config, client)
    if config.voyage_api_key:
        return HTTPEmbedder(VOYAGE, config.voyage_api_key, config.http_timeout, client)
    if config.openai_api_key:
        return HTTPEmbedder(OPENAI, config.openai_api_key, config.http_timeout, client)
    raise EmbeddingError(
        "no embedding provider found; set OLLAMA_EMBED_MODEL, VOYAGE_API_KEY, or OPENAI_API_KEY"
    )
