"""Unified configuration for the sales reporting pipeline.

This module provides a single configuration class describing how the
upstream item store is reached and how hard each source is retried.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from sales_bi.exceptions import ConfigError

DEFAULT_TIMEOUT = 30.0
DEFAULT_TARGET = 650000.0
# One worker per item store collection, so no read queues behind another
MIN_WORKERS = 6


def _env_number(name: str, default: float, cast: type = float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class SourceConfig:
    """Settings for reading collections from the item store.

    Attributes:
        base_url: Root URL of the item store (e.g. "http://host:8060").
            Collections are read from ``{base_url}/items/{collection}``.
        timeout: Hard timeout in seconds for a single HTTP attempt.
        critical_retries: Attempts made for critical sources (invoices, returns).
        critical_delay: Seconds to wait between attempts on critical sources.
        optional_retries: Attempts made for optional reference sources.
        optional_delay: Seconds to wait between attempts on optional sources.
        max_workers: Size of the thread pool used to fetch sources concurrently
            (at least one per collection).
        default_target: Sales target assigned to salesmen without an explicit one.
        access_token: Optional bearer token sent to the item store.
    """

    base_url: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    critical_retries: int = 3
    critical_delay: float = 2.0
    optional_retries: int = 2
    optional_delay: float = 0.5
    max_workers: int = MIN_WORKERS
    default_target: float = DEFAULT_TARGET
    access_token: str | None = None

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.critical_retries < 1 or self.optional_retries < 1:
            raise ConfigError("retry counts must be at least 1")
        if self.critical_delay < 0 or self.optional_delay < 0:
            raise ConfigError("retry delays must not be negative")
        if self.max_workers < MIN_WORKERS:
            raise ConfigError(
                f"max_workers must be at least {MIN_WORKERS}, got {self.max_workers}"
            )

    @classmethod
    def from_env(cls) -> SourceConfig:
        """Create a SourceConfig from ``BI_*`` environment variables.

        Returns:
            SourceConfig instance.

        Raises:
            ConfigError: If a numeric variable cannot be parsed.

        Example (shell):
            BI_ITEMS_BASE=http://localhost:8060 BI_TIMEOUT=10 sales-bi --from 2025-11-01
        """
        base_url = (os.environ.get("BI_ITEMS_BASE") or "").strip() or None
        token = (os.environ.get("BI_ACCESS_TOKEN") or "").strip() or None
        return cls(
            base_url=base_url,
            timeout=_env_number("BI_TIMEOUT", DEFAULT_TIMEOUT),
            critical_retries=int(_env_number("BI_CRITICAL_RETRIES", 3, int)),
            critical_delay=_env_number("BI_CRITICAL_DELAY", 2.0),
            optional_retries=int(_env_number("BI_OPTIONAL_RETRIES", 2, int)),
            optional_delay=_env_number("BI_OPTIONAL_DELAY", 0.5),
            max_workers=int(_env_number("BI_MAX_WORKERS", MIN_WORKERS, int)),
            default_target=_env_number("BI_DEFAULT_TARGET", DEFAULT_TARGET),
            access_token=token,
        )

    def collection_url(self, collection: str) -> str:
        """Return the item store URL for a collection.

        Raises:
            ConfigError: If no base URL is configured.
        """
        if not self.base_url:
            raise ConfigError("Item store base URL is not configured (set BI_ITEMS_BASE)")
        return f"{self.base_url.rstrip('/')}/items/{collection}"
