"""
Query options, status and observable result types.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from config.settings import settings


class QueryStatus(Enum):
    """Per-subscription state."""
    NO_DATA = "no_data"               # nothing cached, nothing loading (disabled)
    LOADING = "loading"               # blocking fetch in progress
    FRESH = "fresh"                   # serving fresh data
    STALE_SERVING = "stale_serving"   # serving stale data, refresh pending or failed
    ERROR = "error"                   # blocking fetch failed


class QueryOptions(BaseModel):
    """
    Per-subscription options. Durations are in seconds.

    Defaults come from config.settings so they can be tuned via environment.
    """
    model_config = ConfigDict(extra="forbid")

    ttl: float = Field(default_factory=lambda: settings.cache_ttl_seconds, gt=0)
    stale_time: float = Field(default_factory=lambda: settings.cache_stale_seconds, ge=0)
    retry: int = Field(default_factory=lambda: settings.retry_attempts, ge=0)
    retry_delay: float = Field(default_factory=lambda: settings.retry_delay_seconds, ge=0)
    refetch_interval: float = Field(
        default_factory=lambda: settings.refetch_interval_seconds, ge=0
    )  # 0 disables
    refetch_on_attention: bool = False
    enabled: bool = True
    on_success: Optional[Callable[[Any], Any]] = None
    on_error: Optional[Callable[[BaseException], Any]] = None

    @model_validator(mode="after")
    def _check_stale_within_ttl(self) -> "QueryOptions":
        # Otherwise every entry would be stale the instant it is written
        if self.stale_time > self.ttl:
            raise ValueError(
                f"stale_time ({self.stale_time}s) must not exceed ttl ({self.ttl}s)"
            )
        return self


@dataclass(frozen=True)
class QueryResult:
    """
    Snapshot of a subscription's observable state.
    """
    key: str
    status: QueryStatus
    data: Any = None
    error: Optional[BaseException] = None
    is_loading: bool = False
    is_fetching: bool = False
    is_stale: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            "key": self.key,
            "status": self.status.value,
            "data": self.data,
            "error": str(self.error) if self.error is not None else None,
            "isLoading": self.is_loading,
            "isFetching": self.is_fetching,
            "isStale": self.is_stale,
        }
