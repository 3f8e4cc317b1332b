"""Pipeline: fetch and generate stages, progress events and the CLI."""

from denote.pipeline.events import LoggingEvents, PipelineEvents
from denote.pipeline.orchestrator import DigestPipeline, FetchOrchestrator, RunResult, run

__all__ = [
    "LoggingEvents",
    "PipelineEvents",
    "DigestPipeline",
    "FetchOrchestrator",
    "RunResult",
    "run",
]
