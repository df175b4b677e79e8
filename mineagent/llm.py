"""Remote chat client: HTTP connection to Cloudflare Workers AI.

The session engine depends on a chat backend matching the protocol:

    async def chat(self, session: ConversationSession, system_prompt: str) -> str: ...

Two implementations are provided:

    ChatClient  - real HTTP client. Resolves the Cloudflare account id once
                  (cached), builds the payload for the configured model
                  family, and extracts the reply text from any of the
                  response shapes the API has returned over time.
    EchoChat    - replies with the last history entry. Useful for
                  smoke-testing the engine wiring without credentials.

The ChatClient's pooled httpx.AsyncClient is shared with the search helpers
(see mineagent.search) and released by shutdown().
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from mineagent.models import Message
from mineagent.session import ConversationSession
from mineagent.storage.config import DEFAULT_MODEL, AgentConfig

logger = logging.getLogger(__name__)

API_ROOT = "https://api.cloudflare.com/client/v4"

DEFAULT_TIMEOUT = httpx.Timeout(connect=30.0, read=60.0, write=60.0, pool=60.0)


# ---------------------------------------------------------------------------
# Protocol: every chat backend must match this signature
# ---------------------------------------------------------------------------

class ChatBackend(Protocol):
    async def chat(self, session: ConversationSession, system_prompt: str) -> str: ...

    async def shutdown(self) -> None: ...


# ---------------------------------------------------------------------------
# Response shapes
# ---------------------------------------------------------------------------

def extract_reply_text(data: Any) -> str | None:
    """Return the assistant text from a response body, or None.

    Shapes are tried in order, first match wins:
      1. a bare string
      2. {"response": "..."}
      3. {"choices": [{"message": {"content": "..."}}]}
      4. {"output": [{"type": "message",
                      "content": [{"type": "output_text", "text": "..."}]}]}
    A Cloudflare {"result": ...} envelope is unwrapped first.
    """
    if isinstance(data, dict) and "result" in data:
        data = data["result"]

    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return None

    if isinstance(data.get("response"), str):
        return data["response"]

    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]

    output = data.get("output")
    if isinstance(output, list):
        for item in output:
            if not isinstance(item, dict) or item.get("type") != "message":
                continue
            for part in item.get("content") or []:
                if (
                    isinstance(part, dict)
                    and part.get("type") == "output_text"
                    and isinstance(part.get("text"), str)
                ):
                    return part["text"]

    return None


def is_responses_model(model: str) -> bool:
    """gpt-oss models speak the Responses API (instructions + input)."""
    return "gpt-oss" in model


# ---------------------------------------------------------------------------
# ChatClient: connects to Cloudflare Workers AI
# ---------------------------------------------------------------------------

class ChatClient:
    """Async client for the Workers AI run endpoint.

    Args:
        cf_key:           Cloudflare API token, sent as a bearer token.
        model:            Workers AI model id, e.g. "@cf/openai/gpt-oss-120b".
        reasoning_effort: Passed to Responses-family models.
        max_tokens:       Passed to chat-family models.
        http:             Optional pre-built client (tests, custom transports).
        api_root:         Base URL of the Cloudflare API.
    """

    def __init__(
        self,
        cf_key: str = "",
        model: str = DEFAULT_MODEL,
        reasoning_effort: str = "medium",
        max_tokens: int = 1024,
        http: httpx.AsyncClient | None = None,
        api_root: str = API_ROOT,
    ) -> None:
        self._cf_key = cf_key
        self._model = model
        self._reasoning_effort = reasoning_effort
        self._max_tokens = max_tokens
        self._api_root = api_root.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self._account_id: str | None = None

    @classmethod
    def from_config(cls, config: AgentConfig, http: httpx.AsyncClient | None = None) -> ChatClient:
        return cls(
            cf_key=config.cf_key,
            model=config.model,
            reasoning_effort=config.reasoning_effort,
            max_tokens=config.max_tokens,
            http=http,
        )

    def configure(self, config: AgentConfig) -> None:
        """Apply reloaded settings. A new key invalidates the cached account id."""
        if config.cf_key != self._cf_key:
            self._account_id = None
        self._cf_key = config.cf_key
        self._model = config.model
        self._reasoning_effort = config.reasoning_effort
        self._max_tokens = config.max_tokens

    @property
    def http(self) -> httpx.AsyncClient:
        """Shared connection pool, reused by the search helpers."""
        return self._http

    @property
    def model(self) -> str:
        return self._model

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._cf_key}",
        }

    def _require_key(self) -> None:
        if not self._cf_key:
            raise ConfigurationError(
                "No Cloudflare API token configured: set cloudflare.cf_key "
                "in config.json (or the CF_KEY environment variable)"
            )

    async def resolve_account_id(self) -> str:
        """Return the Cloudflare account id, fetching it on first use."""
        if self._account_id is not None:
            return self._account_id
        self._require_key()

        url = f"{self._api_root}/accounts"
        try:
            resp = await self._http.get(url, headers=self._headers())
        except httpx.TimeoutException as e:
            raise NetworkError("Timed out resolving the Cloudflare account") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Cannot connect to Cloudflare: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise ConfigurationError(
                f"Failed to resolve Cloudflare account id (HTTP {resp.status_code}); "
                "check that cloudflare.cf_key is valid"
            )
        try:
            accounts = resp.json().get("result") or []
            account_id = accounts[0]["id"]
        except (ValueError, AttributeError, LookupError, TypeError) as e:
            raise ConfigurationError(
                "No Cloudflare account is visible to this token; "
                "check the permissions of cloudflare.cf_key"
            ) from e

        self._account_id = str(account_id)
        logger.info("Resolved Cloudflare account id")
        return self._account_id

    def build_payload(self, history: Sequence[Message], system_prompt: str) -> dict[str, Any]:
        """Request body for the configured model family.

        System-role entries never belong in history; any that slip in are
        dropped here so the system prompt travels on its own channel.
        """
        turns = [
            {"role": m.role, "content": m.content}
            for m in history
            if m.role != "system"
        ]
        if is_responses_model(self._model):
            return {
                "model": self._model,
                "instructions": system_prompt,
                "input": turns,
                "reasoning": {"effort": self._reasoning_effort},
            }
        return {
            "messages": [{"role": "system", "content": system_prompt}, *turns],
            "max_tokens": self._max_tokens,
        }

    async def chat(self, session: ConversationSession, system_prompt: str) -> str:
        """Send the session history and return the assistant's reply text."""
        self._require_key()
        account_id = await self.resolve_account_id()
        url = f"{self._api_root}/accounts/{account_id}/ai/run/{self._model}"
        history = session.history()
        body = self.build_payload(history, system_prompt)

        logger.info("chat request url=%s model=%s turns=%d", url, self._model, len(history))
        logger.debug("chat payload %s", json.dumps(body, ensure_ascii=False))

        try:
            resp = await self._http.post(url, json=body, headers=self._headers())
        except httpx.TimeoutException as e:
            raise NetworkError("Chat request timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Cannot connect to Cloudflare: {e}") from e

        raw = resp.text
        logger.info("chat response status=%d len=%d", resp.status_code, len(raw))
        logger.debug("chat response body %s", raw)

        if not 200 <= resp.status_code < 300:
            raise ProtocolError(
                f"Chat request failed with HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=raw,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise ProtocolError("unparseable response", status_code=resp.status_code, body=raw) from e

        text = extract_reply_text(data)
        if text is None:
            raise ProtocolError("unparseable response", status_code=resp.status_code, body=raw)
        return text

    async def shutdown(self) -> None:
        """Close pooled connections."""
        await self._http.aclose()


# ---------------------------------------------------------------------------
# EchoChat: no network calls; useful for wiring smoke tests
# ---------------------------------------------------------------------------

class EchoChat:
    """Replies with the content of the newest history entry."""

    def __init__(self) -> None:
        self.http = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)

    async def chat(self, session: ConversationSession, system_prompt: str) -> str:
        history = session.history()
        logger.debug("EchoChat turns=%d", len(history))
        return history[-1].content if history else ""

    async def shutdown(self) -> None:
        await self.http.aclose()


# ---------------------------------------------------------------------------
# Errors: raised by ChatClient for all configuration, connection and
# protocol failures
# ---------------------------------------------------------------------------

class ChatError(RuntimeError):
    """Base class for remote chat failures."""


class ConfigurationError(ChatError):
    """Credentials or account setup are missing or wrong. Not retried."""


class NetworkError(ChatError):
    """Timeout or connection failure talking to the API."""


class ProtocolError(ChatError):
    """Non-success status or a body none of the known shapes match."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
