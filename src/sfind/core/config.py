from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from sfind.core.constants import DEFAULT_TIMEOUT_S, DEFAULT_WINDOW_SIZE
from sfind.core.errors import ConfigurationError
from sfind.core.models import ResumeMode

DATABASE_URL_ENV = "DATABASE_URL"
API_TOKEN_ENV = "SUBSTREAMS_API_TOKEN"


@dataclass(frozen=True)
class IndexerConfig:
    """Configuration for one indexer run."""

    endpoint_url: str
    package_file: Path
    module_name: str
    database_url: str
    api_token: str | None = None
    skip_migrations: bool = False
    window_size: int = DEFAULT_WINDOW_SIZE
    resume_mode: ResumeMode = "height"
    pipeline_name: str | None = None  # defaults to module_name
    timeout_s: int = DEFAULT_TIMEOUT_S

    def __post_init__(self) -> None:
        if self.window_size <= 0:
            raise ConfigurationError("window_size must be positive")
        if self.resume_mode not in ("height", "cursor"):
            raise ConfigurationError(f"unknown resume mode {self.resume_mode!r}")

    @property
    def pipeline(self) -> str:
        return self.pipeline_name or self.module_name

    @classmethod
    def from_env(
        cls,
        *,
        endpoint_url: str,
        package_file: Path | str,
        module_name: str,
        environ: Mapping[str, str] | None = None,
        **overrides,
    ) -> IndexerConfig:
        """Build a config from CLI values plus DATABASE_URL / SUBSTREAMS_API_TOKEN."""
        env = os.environ if environ is None else environ
        database_url = env.get(DATABASE_URL_ENV, "").strip()
        if not database_url:
            raise ConfigurationError(f"{DATABASE_URL_ENV} must be set")
        token = env.get(API_TOKEN_ENV, "").strip() or None
        return cls(
            endpoint_url=endpoint_url,
            package_file=Path(package_file),
            module_name=module_name,
            database_url=database_url,
            api_token=token,
            **overrides,
        )
