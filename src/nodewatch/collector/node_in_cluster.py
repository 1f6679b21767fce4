"""
Collector that asks an Elasticsearch cluster which nodes it knows about
and reports whether ours is one of them.

Every collect() makes exactly one GET to /_cluster/state/nodes. Failures
never propagate: they flip the up gauge to 0 and drop the membership
sample for that cycle. JSON problems also bump json_parse_failures so
"unreachable" and "reachable but returning garbage" can be told apart.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Tuple

import httpx
from prometheus_client import Gauge
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from nodewatch.collector.base import ScrapeCollector
from nodewatch.errors import (
    DecodeError,
    ResourceReleaseWarning,
    ScrapeError,
    TransportError,
    UnexpectedStatus,
)
from nodewatch.response import ClusterSnapshot

log = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "elasticsearch"
SUBSYSTEM = "node_in_cluster"
STATE_PATH = "/_cluster/state/nodes"


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores, like Prometheus' BuildFQName."""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class MetricDescriptor:
    """Static name/help/labels for a metric whose value is built per scrape."""

    name: str
    documentation: str
    labels: Tuple[str, ...]

    def family(self) -> GaugeMetricFamily:
        return GaugeMetricFamily(self.name, self.documentation, labels=list(self.labels))


class LifetimeCounter:
    """Process-lifetime counter exposed under its bare name.

    prometheus_client's Counter always appends _total and adds a _created
    series, which would rename the exported samples.
    """

    def __init__(self, name: str, documentation: str):
        self.name = name
        self.documentation = documentation
        self._value = 0.0
        self._lock = threading.Lock()

    def inc(self, amount: float = 1.0):
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def describe(self) -> List[Metric]:
        return [Metric(self.name, self.documentation, "counter")]

    def collect(self) -> List[Metric]:
        metric = Metric(self.name, self.documentation, "counter")
        metric.add_sample(self.name, {}, self.value)
        return [metric]


class NodeInClusterCollector(ScrapeCollector):

    def __init__(
        self,
        base_url: str,
        client: httpx.Client,
        node: str,
        namespace: str = DEFAULT_NAMESPACE,
    ):
        try:
            url = httpx.URL(base_url)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid cluster URL {base_url!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"cluster URL must be http(s)://host[:port], got {base_url!r}")

        self._url = url.copy_with(path=url.path.rstrip("/") + STATE_PATH)
        self._client = client
        self._node = node

        # Not registered anywhere on their own -- they're only exposed
        # through this collector. Gauge and LifetimeCounter both lock internally.
        self._up = Gauge(
            build_fq_name(namespace, SUBSYSTEM, "up"),
            "Was the last scrape of the Elasticsearch cluster node endpoint successful.",
            registry=None,
        )
        self._total_scrapes = LifetimeCounter(
            build_fq_name(namespace, SUBSYSTEM, "total_scrapes"),
            "Current total Elasticsearch cluster node scrapes.",
        )
        self._json_parse_failures = LifetimeCounter(
            build_fq_name(namespace, SUBSYSTEM, "json_parse_failures"),
            "Number of errors while parsing JSON.",
        )
        self._nodes_exists = MetricDescriptor(
            name=build_fq_name(namespace, SUBSYSTEM, "nodesexists"),
            documentation="Show if node exists in cluster. 1 if it exists, 0 if it is not in the cluster.",
            labels=("cluster", "node"),
        )

    def describe(self) -> List[Metric]:
        return [
            *self._up.describe(),
            *self._total_scrapes.describe(),
            *self._json_parse_failures.describe(),
            self._nodes_exists.family(),
        ]

    def _bookkeeping(self) -> List[Metric]:
        return [
            *self._up.collect(),
            *self._total_scrapes.collect(),
            *self._json_parse_failures.collect(),
        ]

    def _fetch_and_decode(self) -> ClusterSnapshot:
        url = str(self._url)
        request = self._client.build_request("GET", self._url)
        try:
            response = self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(url, e) from e

        try:
            if not response.is_success:
                raise UnexpectedStatus(url, response.status_code)

            try:
                body = response.read()
            except httpx.HTTPError as e:
                raise TransportError(url, e) from e

            try:
                return ClusterSnapshot.from_json(body)
            except DecodeError:
                self._json_parse_failures.inc()
                raise
        finally:
            self._release(response)

    def _release(self, response: httpx.Response):
        try:
            response.close()
        except (httpx.HTTPError, OSError) as e:
            log.warning("%s", ResourceReleaseWarning(str(self._url), e))

    def collect(self) -> List[Metric]:
        """Scrape the cluster state once and return the resulting families."""
        self._total_scrapes.inc()

        try:
            snapshot = self._fetch_and_decode()
        except ScrapeError as e:
            self._up.set(0)
            log.warning("Failed to fetch and decode node in cluster status: %s", e)
            return self._bookkeeping()

        self._up.set(1)

        present = 1.0 if snapshot.has_node(self._node) else 0.0
        log.debug(
            "Cluster %r has %d nodes, %r present=%d",
            snapshot.cluster_name, len(snapshot.nodes), self._node, present,
        )

        membership = self._nodes_exists.family()
        membership.add_metric([snapshot.cluster_name, self._node], present)
        return [membership, *self._bookkeeping()]

    def last_scrape_succeeded(self) -> bool:
        """Current value of the up gauge."""
        return self._up.collect()[0].samples[0].value == 1

    def name(self) -> str:
        return f"Node in cluster ({self._url}, node={self._node!r})"

    def close(self):
        self._client.close()
