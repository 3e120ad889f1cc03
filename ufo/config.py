"""
UFO Configuration.

Centralized, immutable configuration for the Upload Flow Orchestrator.

An Uploader holds one UploaderConfig as its defaults; every file gets its own
copy produced by for_file() with the options of the add call.

Usage:
    from ufo.config import UploaderConfig

    # For testing
    config = UploaderConfig.for_testing()

    # For development against a local endpoint
    config = UploaderConfig.for_development("http://localhost:8000/upload")

    # For production
    config = UploaderConfig.for_production("https://files.example.com/upload", concurrency=6)

    # From environment
    config = UploaderConfig.from_env()

    # Per-file overrides
    file_config = config.for_file(chunking=False, auto_queue=False)
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from ufo.domain.models.exceptions import ConfigurationError


DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1 MiB
DEFAULT_PERMANENT_ERROR_STATUSES: Tuple[int, ...] = (400, 401, 403, 404, 409, 415, 500, 501)

# Options read once by the Uploader or its transport; they cannot vary per file
UPLOADER_LEVEL_OPTIONS = frozenset({
    "concurrency",
    "permanent_error_statuses",
    "request_timeout",
    "event_history_size",
    "log_level",
})

Hook = Callable[..., Any]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


@dataclass(frozen=True)
class UploaderConfig:
    """
    Uploader configuration.

    Attributes:
        concurrency: Maximum simultaneous transmissions across all files
        chunking: Split files into chunks; otherwise one request per file
        chunk_size: Chunk size in bytes (last chunk may be shorter)
        auto_process: Process files as soon as they are added
        auto_queue: Enqueue files as soon as they are accepted
        auto_upload: Run the dispatch loop when a file is enqueued
        max_retries: Retries per chunk after the first attempt
        min_file_size: Smallest accepted file size in bytes
        max_file_size: Largest accepted file size in bytes (None = unlimited)
        allowed_extensions: Accepted file extensions, e.g. (".csv",); empty = any
        target: Destination config passed to the transport (url, method, headers, params)
        permanent_error_statuses: HTTP statuses that are not retried
        request_timeout: Transport timeout in seconds
        event_history_size: Events kept by the event bus history
        log_level: Level used by configure_logging()
        before_process: Hook(file) run during processing; raise to reject
        finalize: Hook(file) run after all chunks succeeded; raise to fail
        delete: Hook(file) run before a file is deleted; raise to keep it
    """

    concurrency: int = 3
    chunking: bool = True
    chunk_size: int = DEFAULT_CHUNK_SIZE
    auto_process: bool = True
    auto_queue: bool = True
    auto_upload: bool = True
    max_retries: int = 3

    # Validation
    min_file_size: int = 0
    max_file_size: Optional[int] = None
    allowed_extensions: Tuple[str, ...] = ()

    # Transport
    target: Dict[str, Any] = field(default_factory=dict)
    permanent_error_statuses: Tuple[int, ...] = DEFAULT_PERMANENT_ERROR_STATUSES
    request_timeout: float = 30.0

    # Events / logging
    event_history_size: int = 1000
    log_level: str = "INFO"

    # Lifecycle hooks
    before_process: Optional[Hook] = None
    finalize: Optional[Hook] = None
    delete: Optional[Hook] = None

    def __post_init__(self):
        """Validate values; the config is immutable afterwards."""
        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise ConfigurationError(f"concurrency must be a positive integer, got {self.concurrency!r}")
        if not isinstance(self.chunk_size, int) or self.chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be a positive integer, got {self.chunk_size!r}")
        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be a non-negative integer, got {self.max_retries!r}")
        if self.min_file_size < 0:
            raise ConfigurationError("min_file_size must be >= 0")
        if self.max_file_size is not None and self.max_file_size < self.min_file_size:
            raise ConfigurationError("max_file_size must be >= min_file_size")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be > 0")
        # Normalize extensions so ".CSV", "csv" and ".csv" all match
        normalized = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.allowed_extensions
        )
        object.__setattr__(self, "allowed_extensions", normalized)
        object.__setattr__(self, "permanent_error_statuses", tuple(self.permanent_error_statuses))

    # ═══════════════════════════════════════════════════════════════
    # Constructors
    # ═══════════════════════════════════════════════════════════════

    @classmethod
    def for_testing(cls, **overrides: Any) -> "UploaderConfig":
        """
        Config for unit tests.

        Small chunks and no retries so scenarios stay short.
        """
        values: Dict[str, Any] = {
            "concurrency": 2,
            "chunk_size": 4,
            "max_retries": 0,
            "target": {"url": "memory://uploads"},
            "event_history_size": 10000,
            "log_level": "DEBUG",
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def for_development(cls, url: str = "http://localhost:8000/upload") -> "UploaderConfig":
        """Config for a local development endpoint."""
        return cls(
            concurrency=2,
            target={"url": url, "method": "POST"},
            max_retries=1,
            log_level="DEBUG",
        )

    @classmethod
    def for_production(
        cls,
        url: str,
        concurrency: int = 6,
        chunk_size: int = 5 * DEFAULT_CHUNK_SIZE,
        headers: Optional[Dict[str, str]] = None,
    ) -> "UploaderConfig":
        """
        Config for a production endpoint.

        Args:
            url: Upload endpoint
            concurrency: Simultaneous requests
            chunk_size: Chunk size in bytes
            headers: Extra request headers (e.g. Authorization)
        """
        return cls(
            concurrency=concurrency,
            chunk_size=chunk_size,
            max_retries=5,
            target={"url": url, "method": "POST", "headers": dict(headers or {})},
            request_timeout=120.0,
            log_level="WARNING",
        )

    @classmethod
    def from_env(cls) -> "UploaderConfig":
        """
        Create config from environment variables.

        Environment Variables:
            UFO_CONCURRENCY: Simultaneous transmissions (default: 3)
            UFO_CHUNKING: Enable chunking (default: "true")
            UFO_CHUNK_SIZE: Chunk size in bytes (default: 1 MiB)
            UFO_MAX_RETRIES: Retries per chunk (default: 3)
            UFO_AUTO_QUEUE: Enqueue accepted files (default: "true")
            UFO_AUTO_UPLOAD: Start uploads on enqueue (default: "true")
            UFO_UPLOAD_URL: Upload endpoint
            UFO_REQUEST_TIMEOUT: Transport timeout in seconds (default: 30)
            UFO_LOG_LEVEL: Logging level (default: "INFO")

        Returns:
            UploaderConfig instance
        """
        url = os.getenv("UFO_UPLOAD_URL")
        return cls(
            concurrency=_env_int("UFO_CONCURRENCY", 3),
            chunking=_env_bool("UFO_CHUNKING", True),
            chunk_size=_env_int("UFO_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            max_retries=_env_int("UFO_MAX_RETRIES", 3),
            auto_queue=_env_bool("UFO_AUTO_QUEUE", True),
            auto_upload=_env_bool("UFO_AUTO_UPLOAD", True),
            target={"url": url} if url else {},
            request_timeout=_env_float("UFO_REQUEST_TIMEOUT", 30.0),
            log_level=os.getenv("UFO_LOG_LEVEL", "INFO"),
        )

    # ═══════════════════════════════════════════════════════════════
    # Derivation and serialization
    # ═══════════════════════════════════════════════════════════════

    def merge(self, **overrides: Any) -> "UploaderConfig":
        """
        Return a copy with `overrides` applied.

        Raises:
            ConfigurationError: If an override names an unknown option
        """
        if not overrides:
            return self
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(f"Unknown uploader option(s): {', '.join(unknown)}")
        if "target" in overrides and overrides["target"] is not None:
            overrides["target"] = {**self.target, **overrides["target"]}
        return dataclasses.replace(self, **overrides)

    def for_file(self, **options: Any) -> "UploaderConfig":
        """
        Derive the config of one file from these defaults.

        Raises:
            ConfigurationError: If an option is unknown, invalid, or one of
                UPLOADER_LEVEL_OPTIONS
        """
        fixed = sorted(set(options) & UPLOADER_LEVEL_OPTIONS)
        if fixed:
            raise ConfigurationError(
                f"Option(s) {', '.join(fixed)} apply to the whole uploader and cannot be set per file"
            )
        return self.merge(**options)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary (hooks are reported by presence only)."""
        return {
            "concurrency": self.concurrency,
            "chunking": self.chunking,
            "chunk_size": self.chunk_size,
            "auto_process": self.auto_process,
            "auto_queue": self.auto_queue,
            "auto_upload": self.auto_upload,
            "max_retries": self.max_retries,
            "min_file_size": self.min_file_size,
            "max_file_size": self.max_file_size,
            "allowed_extensions": list(self.allowed_extensions),
            "target": dict(self.target),
            "permanent_error_statuses": list(self.permanent_error_statuses),
            "request_timeout": self.request_timeout,
            "event_history_size": self.event_history_size,
            "log_level": self.log_level,
            "has_before_process": self.before_process is not None,
            "has_finalize": self.finalize is not None,
            "has_delete": self.delete is not None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploaderConfig":
        """Deserialize from dictionary (hooks cannot be restored)."""
        return cls(
            concurrency=data.get("concurrency", 3),
            chunking=data.get("chunking", True),
            chunk_size=data.get("chunk_size", DEFAULT_CHUNK_SIZE),
            auto_process=data.get("auto_process", True),
            auto_queue=data.get("auto_queue", True),
            auto_upload=data.get("auto_upload", True),
            max_retries=data.get("max_retries", 3),
            min_file_size=data.get("min_file_size", 0),
            max_file_size=data.get("max_file_size"),
            allowed_extensions=tuple(data.get("allowed_extensions", ())),
            target=dict(data.get("target", {})),
            permanent_error_statuses=tuple(
                data.get("permanent_error_statuses", DEFAULT_PERMANENT_ERROR_STATUSES)
            ),
            request_timeout=data.get("request_timeout", 30.0),
            event_history_size=data.get("event_history_size", 1000),
            log_level=data.get("log_level", "INFO"),
        )


def configure_logging(level: Optional[str] = None) -> None:
    """
    Attach a basic handler to the root logger.

    Meant for scripts; libraries embedding ufo configure logging themselves.

    Args:
        level: Logging level name; defaults to the global config's log_level
    """
    level_name = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Global config instance (lazily initialized)
_global_config: Optional[UploaderConfig] = None


def get_config() -> UploaderConfig:
    """
    Get global uploader configuration.

    Initializes from environment on first call.
    """
    global _global_config
    if _global_config is None:
        _global_config = UploaderConfig.from_env()
    return _global_config


def set_config(config: UploaderConfig) -> None:
    """
    Set global uploader configuration.

    Useful for tests to override configuration.
    """
    global _global_config
    _global_config = config


def reset_config() -> None:
    """
    Reset global configuration to None.

    Next call to get_config() will reinitialize from environment.
    """
    global _global_config
    _global_config = None
