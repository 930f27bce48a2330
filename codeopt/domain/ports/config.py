"""Application configuration models (server, LLM endpoint, optimizer, security, logging)."""

from pydantic import BaseModel, ConfigDict, field_validator


class OpenAICompatibleConfig(BaseModel):
    """OpenAI, LM Studio, vLLM, LocalAI - OpenAI-compatible API."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-3.5-turbo"
    timeout: int = 120
    # Max tokens to generate. None = server/model default.
    max_tokens: int | None = 2000
    temperature: float = 0.3
    # Attempts per file for timeouts and connection errors
    max_retries: int = 3


class OptimizerConfig(BaseModel):
    """Batch optimization settings."""

    # Fixed delay between successive analysis calls (remote rate limit).
    pacing_delay: float = 0.5
    extensions: list[str] = [".cs"]
    max_file_size: int = 500 * 1024
    max_files: int = 1000
    # Start tracemalloc so snapshots carry an allocated-bytes counter.
    trace_allocations: bool = True
    output_dir_name: str = "optimized_solution"
    report_name: str = "optimization_report.html"

    model_config = ConfigDict(extra="ignore")

    @field_validator("pacing_delay")
    @classmethod
    def _non_negative_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("pacing_delay must be >= 0")
        return value

    @field_validator("extensions")
    @classmethod
    def _dotted_extensions(cls, value: list[str]) -> list[str]:
        return [e.lower() if e.startswith(".") else f".{e.lower()}" for e in value if e]


class SecurityConfig(BaseModel):
    """Security settings."""

    rate_limit_requests_per_minute: int = 30
    cors_origins: list[str] = ["http://localhost:5173"]


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    """Full application configuration."""

    server: ServerConfig = ServerConfig()
    openai_compatible: OpenAICompatibleConfig = OpenAICompatibleConfig()
    optimizer: OptimizerConfig = OptimizerConfig()
    security: SecurityConfig = SecurityConfig()
    log_level: str = "INFO"
    # Log file: path relative to cwd or absolute. Empty = only stdout. Rotation when file exceeds max_mb.
    log_file: str = ""
    log_rotation_max_mb: int = 5
    log_rotation_backups: int = 3
