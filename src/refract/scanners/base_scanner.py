"""
Base Scanner - Shared data model and interface for the pipeline stages.

Each stage of the pipeline is a scanner: it receives one WorkItem, probes
the target through the shared ProbeClient and returns what it hands to the
next stage (more WorkItems, or terminal Results). An empty list drops the
item.

Design Pattern: Strategy Pattern
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import structlog

from ..core.config import PipelineConfig


@dataclass(frozen=True)
class WorkItem:
    """
    A unit of work flowing between stages.

    ``param`` is empty when the item enters the pipeline and names a
    reflected query parameter from stage 2 onwards.
    """
    url: str
    param: str = ""


@dataclass(frozen=True)
class Result:
    """
    A parameter with characters that survive unescaped, or a
    database error fingerprint, or both.
    """
    url: str
    param: str
    unfiltered: Tuple[str, ...] = ()
    injection_suspected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "url": self.url,
            "param": self.param,
            "unfiltered": list(self.unfiltered),
            "sql_injection": self.injection_suspected,
        }


StageOutput = Union[WorkItem, Result]


class BaseScanner(ABC):
    """
    Abstract base class for pipeline stages.

    Features:
    1. Unified process() interface used by the worker pools
    2. Shared probe client and configuration
    3. Built-in logging support
    4. Per-stage statistics

    Example:
        >>> class EchoScanner(BaseScanner):
        ...     async def process(self, item):
        ...         return [item]
    """

    def __init__(
        self,
        scanner_name: str,
        client: Any,
        config: Optional[PipelineConfig] = None,
    ):
        """
        Initialize the base scanner.

        Args:
            scanner_name: Name of the stage (e.g., "ReflectionScanner")
            client: Shared ProbeClient (anything with an async fetch(url))
            config: Pipeline configuration
        """
        self.scanner_name = scanner_name
        self.client = client
        self.config = config or PipelineConfig()

        # Statistics
        self.scanned_count = 0
        self.hit_count = 0

        # Logging
        self.logger = structlog.get_logger(
            __name__,
            scanner=self.scanner_name
        )

    @abstractmethod
    async def process(self, item: WorkItem) -> List[StageOutput]:
        """
        Run this stage on one item.

        Args:
            item: WorkItem from the previous stage

        Returns:
            Outputs for the next stage (empty to drop the item)

        Raises:
            ProbeError: If the item cannot be probed
        """
        pass

    def record(self, outputs: List[StageOutput]) -> List[StageOutput]:
        """Update statistics for one processed item"""
        self.scanned_count += 1
        if outputs:
            self.hit_count += 1
        return outputs

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get scanner statistics.

        Returns:
            Dictionary with scanned count and hit count
        """
        return {
            "scanned": self.scanned_count,
            "hits": self.hit_count,
            "hit_rate": (
                self.hit_count / self.scanned_count
                if self.scanned_count > 0
                else 0.0
            ),
        }
