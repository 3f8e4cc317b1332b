"""Digest generation: LLM summarization and markdown rendering."""

from denote.digest.generator import DigestGenerator, format_markdown
from denote.digest.llm import LLMClient, connect_to_llm
from denote.digest.summarizer import LLMSummarizer

__all__ = ["DigestGenerator", "format_markdown", "LLMClient", "connect_to_llm", "LLMSummarizer"]
