"""
Pipeline configuration.

A single immutable configuration object is built before the pipeline starts
and shared read-only by the probe client and every scanner stage.
"""

from dataclasses import dataclass
from typing import Optional


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/80.0.3987.100 Safari/537.36"
)

# Opaque value appended in stage 2 to confirm a parameter is echoed back
DEFAULT_MARKER = "iy3j4h234hjb23234"


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration for the probing pipeline"""
    workers: int = 40               # Worker tasks per stage (same for all stages)
    request_timeout: float = 30.0   # Per-attempt timeout (seconds)
    max_retries: int = 3            # Attempts per request before giving up
    retry_delay: float = 1.0        # Backoff unit: attempt n waits n * retry_delay
    max_body_size: int = 1024 * 1024  # Response bytes read (1 MiB)
    user_agent: str = DEFAULT_USER_AGENT
    verify_tls: bool = False
    marker: str = DEFAULT_MARKER
    max_duration: Optional[float] = None  # Cooperative deadline for a whole run
    dedupe: bool = False            # Skip input URLs already submitted

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError("number of workers must be at least 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must not be negative")
        if self.max_body_size < 1:
            raise ValueError("max_body_size must be at least 1 byte")
        if not self.marker:
            raise ValueError("marker must not be empty")
        if self.max_duration is not None and self.max_duration <= 0:
            raise ValueError("max_duration must be positive")
