"""Dependency Injection Container - centralized service management."""

from functools import cached_property
from typing import TYPE_CHECKING

from codeopt.domain.ports.config import AppConfig
from codeopt.domain.ports.llm import CompletionPort
from codeopt.infrastructure.config import load_config

if TYPE_CHECKING:
    from codeopt.application.optimization import (
        BatchOrchestrator,
        FileAnalysisRunner,
        OptimizationUseCase,
    )
    from codeopt.infrastructure.agents.code_analyzer import CodeOptimizationAnalyzer
    from codeopt.infrastructure.agents.file_writer import WriteBackManager
    from codeopt.infrastructure.profiling.memory_sampler import MemorySampler
    from codeopt.infrastructure.scanner.file_scanner import SourceFileScanner


class Container:
    """Dependency Injection Container with lazy initialization.

    All dependencies are created on first access and cached.

    Usage:
        container = Container()
        use_case = container.optimization_use_case
    """

    def __init__(self, config: AppConfig | None = None):
        """Initialize container with optional config override."""
        self._config_override = config

    @cached_property
    def config(self) -> AppConfig:
        """Application configuration."""
        if self._config_override:
            return self._config_override
        return load_config()

    @cached_property
    def llm(self) -> CompletionPort:
        """OpenAI-compatible completion client."""
        from codeopt.infrastructure.llm.openai_compatible import OpenAICompatibleClient
        return OpenAICompatibleClient(self.config.openai_compatible)

    @cached_property
    def analyzer(self) -> "CodeOptimizationAnalyzer":
        """Per-file analysis collaborator."""
        from codeopt.infrastructure.agents.code_analyzer import CodeOptimizationAnalyzer
        return CodeOptimizationAnalyzer(
            self.llm,
            temperature=self.config.openai_compatible.temperature,
            attempts=self.config.openai_compatible.max_retries,
        )

    @cached_property
    def scanner(self) -> "SourceFileScanner":
        """Discovery/prioritization collaborator."""
        from codeopt.infrastructure.scanner.file_scanner import SourceFileScanner
        opt = self.config.optimizer
        return SourceFileScanner(
            extensions=opt.extensions,
            max_file_size=opt.max_file_size,
            max_files=opt.max_files,
        )

    @cached_property
    def sampler(self) -> "MemorySampler":
        """Memory sampler for before/after readings."""
        from codeopt.infrastructure.profiling.memory_sampler import MemorySampler
        return MemorySampler(trace_allocations=self.config.optimizer.trace_allocations)

    @cached_property
    def runner(self) -> "FileAnalysisRunner":
        from codeopt.application.optimization import FileAnalysisRunner
        return FileAnalysisRunner(self.analyzer, self.sampler)

    @cached_property
    def orchestrator(self) -> "BatchOrchestrator":
        from codeopt.application.optimization import BatchOrchestrator
        return BatchOrchestrator(
            self.scanner,
            self.runner,
            pacing_delay=self.config.optimizer.pacing_delay,
        )

    @cached_property
    def write_back(self) -> "WriteBackManager":
        """Write-back manager (save to directory / backup then overwrite)."""
        from codeopt.infrastructure.agents.file_writer import WriteBackManager
        return WriteBackManager()

    @cached_property
    def optimization_use_case(self) -> "OptimizationUseCase":
        """Optimization use case with all dependencies."""
        from codeopt.application.optimization import OptimizationUseCase
        opt = self.config.optimizer
        return OptimizationUseCase(
            self.orchestrator,
            write_back=self.write_back,
            output_dir_name=opt.output_dir_name,
            report_name=opt.report_name,
        )

    def reset(self) -> None:
        """Reset all cached instances (useful for testing)."""
        # Clear cached_property values
        for attr in list(self.__dict__.keys()):
            if not attr.startswith("_"):
                delattr(self, attr)


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get or create global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container
