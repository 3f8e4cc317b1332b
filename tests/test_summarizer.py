"""Tests for the LLM clients and the summarizer."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from denote.config import apply_defaults
from denote.digest.llm import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_OPENAI_MODEL,
    AnthropicClient,
    MockClient,
    OllamaClient,
    OpenAIClient,
    connect_to_llm,
)
from denote.digest.summarizer import LLMSummarizer
from denote.errors import LLMError
from denote.storage.models import ContentItem

LONG_BODY = " ".join(f"word{i}" for i in range(400))


def make_item(item_id: str = "item-1", content: str = LONG_BODY, author: str = None) -> ContentItem:
    return ContentItem(
        id=item_id,
        title="A long article",
        url=f"https://example.com/{item_id}",
        published_at=datetime(2025, 1, 8, tzinfo=timezone.utc),
        source="test_feed",
        content=content,
        author=author,
    )


@pytest.fixture
def config():
    return {"summary_length": 50}


@pytest.fixture
def sdk_keys(monkeypatch):
    """API keys so the SDK clients can be constructed without network access."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")


# --- Fake SDK objects ---

async def _aiter(values):
    for value in values:
        yield value


def openai_chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeCompletions:
    def __init__(self, reply="", chunks=()):
        self.reply = reply
        self.chunks = list(chunks)
        self.calls = []

    async def create(self, stream=False, **kwargs):
        self.calls.append(dict(kwargs, stream=stream))
        if stream:
            return _aiter(self.chunks)
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    def __init__(self, completions):
        self.chat = SimpleNamespace(completions=completions)
        self.closed = False

    async def close(self):
        self.closed = True


class FakeMessageStream:
    def __init__(self, texts):
        self.text_stream = _aiter(texts)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeMessages:
    def __init__(self, reply="", texts=()):
        self.reply = reply
        self.texts = list(texts)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(text=self.reply)])

    def stream(self, **kwargs):
        self.calls.append(kwargs)
        return FakeMessageStream(self.texts)


class FakeAnthropic:
    def __init__(self, messages):
        self.messages = messages
        self.closed = False

    async def close(self):
        self.closed = True


class TestMockClient:
    async def test_template_response(self):
        client = MockClient()
        text = await client.generate("Title: x\n\nContent:\none two three\n\nSummary:")
        assert text == "Summary of: one two three..."
        assert len(client.prompts) == 1

    async def test_fixed_response_streams_words(self):
        client = MockClient("hello brave world")
        chunks = []
        text = await client.generate("prompt", chunks.append)
        assert text == "hello brave world"
        assert "".join(chunks).strip() == "hello brave world"
        assert len(chunks) == 3


class TestConnectToLLM:
    def test_ollama(self):
        client = connect_to_llm({"provider": "ollama", "model": "llama3", "parameters": {"temperature": 0.1}})
        assert isinstance(client, OllamaClient)
        body = client._request_body("hi", stream=True)
        assert body["model"] == "llama3"
        assert body["stream"] is True
        assert body["options"]["temperature"] == 0.1
        assert body["options"]["num_predict"] == 512

    def test_ollama_default_model(self):
        config = apply_defaults({"feeds": [], "topics": []})
        assert connect_to_llm(config["llm"]).model == "mistral"

    def test_openai_default_model(self, sdk_keys):
        config = apply_defaults({"feeds": [], "topics": [], "llm": {"provider": "openai"}})
        client = connect_to_llm(config["llm"])
        assert isinstance(client, OpenAIClient)
        assert client.model == DEFAULT_OPENAI_MODEL

    def test_anthropic_default_model(self, sdk_keys):
        config = apply_defaults({"feeds": [], "topics": [], "llm": {"provider": "anthropic"}})
        client = connect_to_llm(config["llm"])
        assert isinstance(client, AnthropicClient)
        assert client.model == DEFAULT_ANTHROPIC_MODEL

    def test_configured_model_wins(self, sdk_keys):
        client = connect_to_llm({"provider": "openai", "model": "gpt-4.1"})
        assert client.model == "gpt-4.1"

    def test_mock(self):
        assert isinstance(connect_to_llm({"provider": "mock"}), MockClient)

    def test_unknown(self):
        with pytest.raises(LLMError):
            connect_to_llm({"provider": "carrier-pigeon"})


class TestLLMSummarizer:
    async def test_short_content_kept_verbatim(self, config):
        client = MockClient()
        summarizer = LLMSummarizer(config, client)
        result = await summarizer.summarize_item(make_item(content="Short note."))
        assert result.summary == "Short note."
        assert result.summarized is True
        assert client.prompts == []

    async def test_prompt_contents(self, config):
        client = MockClient("ok")
        summarizer = LLMSummarizer(config, client)
        await summarizer.summarize_item(make_item(author="Ada"))
        prompt = client.prompts[0]
        assert "about 50 words" in prompt
        assert "Title: A long article" in prompt
        assert "Source: test_feed" in prompt
        assert "Author: Ada" in prompt
        assert "Date: 2025-01-08" in prompt
        assert prompt.endswith("Summary:")

    async def test_prompt_without_author(self, config):
        client = MockClient("ok")
        await LLMSummarizer(config, client).summarize_item(make_item())
        assert "Author:" not in client.prompts[0]

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Summary: The gist.", "The gist."),
            ('"Quoted gist."', "Quoted gist."),
            ("  padded  ", "padded"),
        ],
    )
    async def test_response_cleanup(self, config, raw, expected):
        result = await LLMSummarizer(config, MockClient(raw)).summarize_item(make_item())
        assert result.summary == expected
        assert result.summarized is True

    async def test_failure_falls_back(self, config):
        client = MockClient()
        client.generate = AsyncMock(side_effect=LLMError("server down"))
        result = await LLMSummarizer(config, client).summarize_item(make_item())
        assert result.summarized is False
        assert result.summary == "Error summarising content: server down"
        assert result.item.id == "item-1"

    async def test_streaming_callback(self, config):
        chunks = []
        summarizer = LLMSummarizer(config, MockClient("streamed summary"))
        result = await summarizer.summarize_item(make_item(), chunks.append)
        assert result.summary == "streamed summary"
        assert chunks == ["streamed ", "summary "]

    async def test_summarize_items_in_order_with_factory(self, config):
        seen = []
        summarizer = LLMSummarizer(config, MockClient("done"))

        def factory(item):
            seen.append(item.id)
            return None

        items = [make_item("a"), make_item("b", content="tiny"), make_item("c")]
        results = await summarizer.summarize_items(items, factory)
        assert [r.id for r in results] == ["a", "b", "c"]
        assert seen == ["a", "b", "c"]
        assert results[1].summary == "tiny"

    async def test_one_failure_does_not_stop_batch(self, config):
        client = MockClient()
        client.generate = AsyncMock(side_effect=[RuntimeError("boom"), "fine"])
        results = await LLMSummarizer(config, client).summarize_items([make_item("a"), make_item("b")])
        assert [r.summarized for r in results] == [False, True]
        assert results[1].summary == "fine"


class TestOpenAIClient:
    async def test_generate(self, sdk_keys):
        client = OpenAIClient(parameters={"max_tokens": 64})
        completions = FakeCompletions(reply="A tidy summary.")
        client._client = FakeOpenAI(completions)

        assert await client.generate("Summarise this") == "A tidy summary."
        call = completions.calls[0]
        assert call["model"] == DEFAULT_OPENAI_MODEL
        assert call["max_tokens"] == 64
        assert call["stream"] is False
        assert call["messages"][-1] == {"role": "user", "content": "Summarise this"}

    async def test_generate_empty_content(self, sdk_keys):
        client = OpenAIClient()
        client._client = FakeOpenAI(FakeCompletions(reply=None))
        assert await client.generate("prompt") == ""

    async def test_streaming_skips_empty_chunks(self, sdk_keys):
        client = OpenAIClient()
        chunks = [
            SimpleNamespace(choices=[]),
            openai_chunk("Hel"),
            openai_chunk(None),
            openai_chunk("lo"),
        ]
        completions = FakeCompletions(chunks=chunks)
        client._client = FakeOpenAI(completions)

        received = []
        text = await client.generate("prompt", received.append)
        assert text == "Hello"
        assert received == ["Hel", "lo"]
        assert completions.calls[0]["stream"] is True

    async def test_close(self, sdk_keys):
        client = OpenAIClient()
        fake = FakeOpenAI(FakeCompletions())
        client._client = fake
        await client.close()
        assert fake.closed


class TestAnthropicClient:
    async def test_generate(self, sdk_keys):
        client = AnthropicClient(parameters={"max_tokens": 128})
        messages = FakeMessages(reply="Short and factual.")
        client._client = FakeAnthropic(messages)

        assert await client.generate("Summarise this") == "Short and factual."
        call = messages.calls[0]
        assert call["model"] == DEFAULT_ANTHROPIC_MODEL
        assert call["max_tokens"] == 128
        assert call["messages"] == [{"role": "user", "content": "Summarise this"}]

    async def test_streaming(self, sdk_keys):
        client = AnthropicClient()
        client._client = FakeAnthropic(FakeMessages(texts=["Stream", "ed ", "text"]))

        received = []
        text = await client.generate("prompt", received.append)
        assert text == "Streamed text"
        assert received == ["Stream", "ed ", "text"]

    async def test_summarizer_with_anthropic(self, sdk_keys):
        client = AnthropicClient()
        client._client = FakeAnthropic(FakeMessages(reply='Summary: "Done."'))
        result = await LLMSummarizer({"summary_length": 50}, client).summarize_item(make_item())
        assert result.summarized is True
        assert result.summary == "Done."
