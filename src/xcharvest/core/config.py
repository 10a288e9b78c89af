"""Application settings."""

from __future__ import annotations

import math
from pathlib import Path

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from xcharvest.core.base import BaseConfig
from xcharvest.core.log import Logger, setup_logger
from xcharvest.core.yaml_settings import YamlWithIncludesSettingsSource

MB = 1024 * 1024


class SizeTiers(BaseModel):
    """A value chosen by bundle size: small, medium or large."""

    small: float
    medium: float
    large: float


class DerivedDataConfig(BaseConfig):
    """Where the IDE keeps per-project output directories."""

    root: Path | None = Field(
        default=None,
        description=(
            "DerivedData root. If unset, the IDE preference "
            "IDECustomDerivedDataLocation is consulted, then "
            "~/Library/Developer/Xcode/DerivedData"
        ),
    )
    read_ide_preference: bool = Field(
        default=True,
        description="Consult `defaults read` for a custom location",
    )
    metadata_file: str = Field(
        default="info.plist",
        description="Per-directory metadata file recording the workspace",
    )
    workspace_key: str = Field(
        default="WorkspacePath",
        description="Metadata key holding the original workspace path",
    )


class BuildLogConfig(BaseConfig):
    """Freshness polling for build logs."""

    suffix: str = Field(default=".xcactivitylog")
    poll_interval: float = Field(
        default=0.5, description="Seconds between directory polls"
    )
    timeout: float = Field(
        default=30.0,
        description="Seconds to wait for a log newer than the trigger",
    )


class StabilityConfig(BaseConfig):
    """Write-completion detection for a located artifact."""

    interval: float = Field(default=0.5)
    required_polls: int = Field(
        default=6,
        description="Consecutive unchanged polls before declaring stable",
    )
    timeout: float = Field(
        default=300.0,
        description="Give up waiting and decode best-effort after this",
    )


class DecoderConfig(BaseConfig):
    """External decoder commands and retry policy."""

    xclogparser: list[str] = Field(default_factory=lambda: ["xclogparser"])
    xcresulttool: list[str] = Field(
        default_factory=lambda: ["xcrun", "xcresulttool"]
    )
    timeout: float = Field(
        default=120.0, description="Per-invocation decoder timeout"
    )
    retry_delays: list[float] = Field(
        default_factory=lambda: [1, 2, 3, 5, 8, 13],
        description="Backoff before retry N (last value repeats)",
    )
    max_retries: int = Field(default=6)
    transient_markers: list[str] = Field(
        default_factory=lambda: [
            "invalid log",
            "corrupted",
            "incomplete",
            "parsing failed",
            "not a valid slf log",
            "not a valid xcactivitylog file",
            "error while parsing",
            "failed to parse",
        ],
        description="Case-insensitive stderr markers of a partial read",
    )


class ReadinessConfig(BaseConfig):
    """Test-result bundle readiness protocol."""

    bundle_suffix: str = Field(default=".xcresult")
    locate_timeout: float = Field(
        default=60.0,
        description="Seconds to wait for a bundle newer than the trigger",
    )
    locate_poll_interval: float = Field(default=1.0)

    staging_marker: str = Field(default="Staging")
    metadata_file: str = Field(default="Info.plist")
    database_file: str = Field(default="database.sqlite3")
    payload_dir: str = Field(default="Data")

    staging_poll_interval: float = Field(default=1.0)
    staging_floor: float = Field(
        default=300.0, description="Minimum patience for the staging marker"
    )
    staging_duration_factor: float = Field(
        default=2.0,
        description="Staging patience per second of expected test time",
    )
    files_poll_interval: float = Field(default=3.0)
    size_sample_interval: float = Field(default=2.0)

    small_bundle_bytes: int = Field(default=10 * MB)
    large_bundle_bytes: int = Field(default=100 * MB)
    stability_seconds: SizeTiers = Field(
        default_factory=lambda: SizeTiers(small=2, medium=6, large=12)
    )
    safety_delay: SizeTiers = Field(
        default_factory=lambda: SizeTiers(small=1, medium=3, large=5)
    )
    validation_retry_delay: SizeTiers = Field(
        default_factory=lambda: SizeTiers(small=3, medium=8, large=15)
    )
    validation_timeout: float = Field(
        default=20.0, description="Timeout of the fast summary query"
    )
    validation_attempts: int = Field(default=12)
    overall_timeout: float = Field(default=1800.0)

    def tier(self, tiers: SizeTiers, total_bytes: int) -> float:
        """Pick the tier value for a bundle of total_bytes."""
        if total_bytes < self.small_bundle_bytes:
            return tiers.small
        if total_bytes > self.large_bundle_bytes:
            return tiers.large
        return tiers.medium

    def required_stable_samples(self, total_bytes: int) -> int:
        """Unchanged size samples needed before the bundle counts as
        written."""
        seconds = self.tier(self.stability_seconds, total_bytes)
        return max(1, math.ceil(seconds / self.size_sample_interval))

    def staging_bound(self, expected_duration: float | None) -> float:
        """How long to wait for the staging marker to go away."""
        scaled = (expected_duration or 0.0) * self.staging_duration_factor
        return max(self.staging_floor, scaled)


class ResultsConfig(BaseConfig):
    """Result presentation."""

    display_limit: int = Field(
        default=50,
        description="Maximum entries per list in formatted text",
    )


class Settings(BaseSettings):
    """Complete xcharvest configuration.

    Sources (highest priority first): constructor arguments,
    environment variables (XCHARVEST_BUILD_LOG__TIMEOUT=60), .env,
    YAML (defaults < user config < ./xcharvest.yaml < --include).
    """

    derived_data: DerivedDataConfig = Field(default_factory=DerivedDataConfig)
    build_log: BuildLogConfig = Field(default_factory=BuildLogConfig)
    stability: StabilityConfig = Field(default_factory=StabilityConfig)
    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
    results: ResultsConfig = Field(default_factory=ResultsConfig)
    logger: Logger = Field(default_factory=Logger)

    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "xcharvest"
        ),
        description="Root directory for log files",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to include and merge. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file="xcharvest.yaml",
        env_file=".env",
        env_prefix="XCHARVEST_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            file_secret_settings,
        )

    def setup_logging(self, session_name: str) -> Logger:
        """Install the global logger from the logger section."""
        return setup_logger(
            log_root=self.log_root,
            session_name=session_name,
            level=self.logger.level,
            console=self.logger.console,
            file=self.logger.file,
        )

    def close(self):
        from xcharvest.core.log import logger
        logger.close()


__all__ = [
    "Settings",
    "SizeTiers",
    "DerivedDataConfig",
    "BuildLogConfig",
    "StabilityConfig",
    "DecoderConfig",
    "ReadinessConfig",
    "ResultsConfig",
]
