"""FastAPI dependencies - DI container."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from codeopt.api.container import get_container
from codeopt.application.optimization import OptimizationUseCase
from codeopt.domain.ports.config import AppConfig
from codeopt.infrastructure.agents.file_writer import WriteBackManager

limiter = Limiter(key_func=get_remote_address)


def get_config() -> AppConfig:
    """Config of the global container (loaded once)."""
    return get_container().config


def get_optimization_use_case() -> OptimizationUseCase:
    return get_container().optimization_use_case


def get_write_back() -> WriteBackManager:
    return get_container().write_back
