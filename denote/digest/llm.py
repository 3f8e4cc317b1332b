"""Language model clients with optional streamed output."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Protocol

import aiohttp

from denote.errors import LLMError

logger = logging.getLogger(__name__)

StreamCallback = Callable[[str], None]

DEFAULT_OLLAMA_URL = "http://localhost:11434/api/generate"
DEFAULT_MODEL = "mistral"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_ANTHROPIC_MODEL = "claude-haiku-4-5-20251001"

# Used when the llm config names no model.
DEFAULT_MODELS = {
    "ollama": DEFAULT_MODEL,
    "openai": DEFAULT_OPENAI_MODEL,
    "anthropic": DEFAULT_ANTHROPIC_MODEL,
}
DEFAULT_TIMEOUT = 300.0

SYSTEM_PROMPT = "You summarise articles for a weekly reading digest. Be concise and factual."


class LLMClient(Protocol):
    """Anything that can turn a prompt into text."""

    async def generate(self, prompt: str, stream_callback: Optional[StreamCallback] = None) -> str:
        """Generate a completion, forwarding chunks to ``stream_callback`` if given."""
        ...

    async def close(self) -> None:
        ...


class OllamaClient:
    """Client for an Ollama ``/api/generate`` endpoint.

    With a stream callback the server replies with newline-delimited JSON
    objects, each carrying a ``response`` fragment.
    """

    def __init__(
        self,
        url: str = DEFAULT_OLLAMA_URL,
        model: str = DEFAULT_MODEL,
        parameters: Optional[Dict[str, Any]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url = url
        self.model = model
        self.parameters = parameters or {}
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _request_body(self, prompt: str, stream: bool) -> Dict[str, Any]:
        p = self.parameters
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": stream,
            "options": {
                "num_predict": p.get("max_tokens", 512),
                "temperature": p.get("temperature", 0.7),
                "top_p": p.get("top_p", 0.95),
                "top_k": p.get("top_k", 40),
            },
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def generate(self, prompt: str, stream_callback: Optional[StreamCallback] = None) -> str:
        stream = stream_callback is not None
        session = await self._get_session()
        try:
            async with session.post(self.url, json=self._request_body(prompt, stream)) as resp:
                if resp.status >= 400:
                    raise LLMError(f"LLM server error: {resp.status} {resp.reason}")
                if stream:
                    return await self._read_stream(resp, stream_callback)
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise LLMError(f"LLM generation failed: {e}") from e

        return (
            data.get("response")
            or data.get("text")
            or data.get("output")
            or data.get("generated_text")
            or ""
        )

    @staticmethod
    async def _read_stream(resp: aiohttp.ClientResponse, callback: StreamCallback) -> str:
        parts = []
        async for raw_line in resp.content:
            line = raw_line.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            try:
                chunk = json.loads(line).get("response", "")
            except json.JSONDecodeError:
                logger.warning("Unparseable stream line from LLM server: %r", line[:80])
                chunk = line
            if chunk:
                callback(chunk)
                parts.append(chunk)
        return "".join(parts)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


class OpenAIClient:
    """Chat-completions client (also works for OpenAI-compatible servers)."""

    def __init__(
        self,
        model: str = DEFAULT_OPENAI_MODEL,
        parameters: Optional[Dict[str, Any]] = None,
        base_url: Optional[str] = None,
    ) -> None:
        from openai import AsyncOpenAI

        self.model = model
        self.parameters = parameters or {}
        self._client = AsyncOpenAI(base_url=base_url) if base_url else AsyncOpenAI()

    async def generate(self, prompt: str, stream_callback: Optional[StreamCallback] = None) -> str:
        kwargs = dict(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.parameters.get("max_tokens", 512),
            temperature=self.parameters.get("temperature", 0.7),
        )
        if stream_callback is None:
            resp = await self._client.chat.completions.create(**kwargs)
            return resp.choices[0].message.content or ""

        parts = []
        stream = await self._client.chat.completions.create(stream=True, **kwargs)
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                stream_callback(delta)
                parts.append(delta)
        return "".join(parts)

    async def close(self) -> None:
        await self._client.close()


class AnthropicClient:
    """Messages API client."""

    def __init__(
        self,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        self.model = model
        self.parameters = parameters or {}
        self._client = AsyncAnthropic()

    async def generate(self, prompt: str, stream_callback: Optional[StreamCallback] = None) -> str:
        kwargs = dict(
            model=self.model,
            max_tokens=self.parameters.get("max_tokens", 512),
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        if stream_callback is None:
            resp = await self._client.messages.create(**kwargs)
            return resp.content[0].text

        parts = []
        async with self._client.messages.stream(**kwargs) as stream:
            async for text in stream.text_stream:
                stream_callback(text)
                parts.append(text)
        return "".join(parts)

    async def close(self) -> None:
        await self._client.close()


class MockClient:
    """Template-based completions for testing (no API calls)."""

    def __init__(self, fixed_response: Optional[str] = None) -> None:
        self.fixed_response = fixed_response
        self.prompts: list[str] = []

    async def generate(self, prompt: str, stream_callback: Optional[StreamCallback] = None) -> str:
        self.prompts.append(prompt)
        if self.fixed_response is not None:
            text = self.fixed_response
        else:
            body = prompt.split("Content:", 1)[-1].split("Summary:", 1)[0]
            text = "Summary of: " + " ".join(body.split()[:30]) + "..."
        if stream_callback is not None:
            for word in text.split(" "):
                stream_callback(word + " ")
        return text

    async def close(self) -> None:
        pass


def connect_to_llm(llm_config: Dict[str, Any]) -> LLMClient:
    """Build the client named by ``llm_config['provider']``."""
    provider = llm_config.get("provider", "ollama")
    model = llm_config.get("model") or DEFAULT_MODELS.get(provider, DEFAULT_MODEL)
    parameters = llm_config.get("parameters") or {}

    if provider == "ollama":
        return OllamaClient(
            url=llm_config.get("url") or DEFAULT_OLLAMA_URL,
            model=model,
            parameters=parameters,
        )
    if provider == "openai":
        return OpenAIClient(model=model, parameters=parameters, base_url=llm_config.get("base_url"))
    if provider == "anthropic":
        return AnthropicClient(model=model, parameters=parameters)
    if provider == "mock":
        return MockClient()
    raise LLMError(f"Unknown llm provider: {provider!r}")
