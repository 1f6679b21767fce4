"""
Base collector interface.

A collector is anything a prometheus_client CollectorRegistry can drive:
it declares its metric families once via describe(), then produces
samples on every scrape via collect(). The registry holds a reference to
the collector and calls both; collectors never run their own loop.
"""

from abc import ABC, abstractmethod
from typing import List

from prometheus_client.metrics_core import Metric


class ScrapeCollector(ABC):
    """Interface for all scrape-on-demand collectors."""

    @abstractmethod
    def describe(self) -> List[Metric]:
        """Metric families this collector produces, without samples."""
        ...

    @abstractmethod
    def collect(self) -> List[Metric]:
        """Run one scrape cycle and return the resulting metric families."""
        ...

    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this source."""
        ...
