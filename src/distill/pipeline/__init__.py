"""distill summarisation pipeline and knowledge-base compression."""

from __future__ import annotations

from distill.pipeline.compressor import (
    COMPRESSION_STYLES,
    CompressionResult,
    CompressionStyle,
    KnowledgeBaseCompressor,
    register_style,
)
from distill.pipeline.orchestrator import PipelineOrchestrator, RunOutcome

__all__ = [
    "COMPRESSION_STYLES",
    "CompressionResult",
    "CompressionStyle",
    "KnowledgeBaseCompressor",
    "PipelineOrchestrator",
    "RunOutcome",
    "register_style",
]
