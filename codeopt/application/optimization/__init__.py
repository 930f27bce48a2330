"""Batch optimization application layer."""

from codeopt.application.optimization.aggregator import Aggregator
from codeopt.application.optimization.dto import (
    CodeOptimizeResponse,
    JobStatus,
    OptimizationJob,
    OptimizeRequest,
    OptimizeResponse,
    WriteMode,
)
from codeopt.application.optimization.orchestrator import BatchOrchestrator
from codeopt.application.optimization.runner import FileAnalysisRunner
from codeopt.application.optimization.use_case import OptimizationUseCase

__all__ = [
    "Aggregator",
    "BatchOrchestrator",
    "CodeOptimizeResponse",
    "FileAnalysisRunner",
    "JobStatus",
    "OptimizationJob",
    "OptimizationUseCase",
    "OptimizeRequest",
    "OptimizeResponse",
    "WriteMode",
]
