"""
End-to-end tests against the fake cluster state server.

Starts the fake server in a thread, points a real httpx client at it,
and checks the collector end to end.
"""

import threading
import time
from http.server import HTTPServer

import httpx

from nodewatch.collector.node_in_cluster import NodeInClusterCollector
from nodewatch.mock.fake_cluster_server import build_cluster_state, make_handler


def _start_test_server(port: int, **kwargs) -> HTTPServer:
    server = HTTPServer(("127.0.0.1", port), make_handler(**kwargs))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    time.sleep(0.2)  # let it bind
    return server


def _values(families):
    return {f.name: f.samples[0].value for f in families}


def test_collector_finds_node_on_fake_server():
    server = _start_test_server(19881, cluster_name="prod", node_names=["prod-node-1", "prod-node-2"])
    try:
        collector = NodeInClusterCollector(
            "http://127.0.0.1:19881", httpx.Client(timeout=2.0), "node-2"
        )
        families = collector.collect()
        values = _values(families)

        assert values["elasticsearch_node_in_cluster_up"] == 1
        assert values["elasticsearch_node_in_cluster_nodesexists"] == 1
        membership = next(f for f in families if f.name.endswith("nodesexists"))
        assert membership.samples[0].labels == {"cluster": "prod", "node": "node-2"}

        collector.close()
    finally:
        server.shutdown()
        server.server_close()


def test_collector_reports_missing_node():
    server = _start_test_server(19882, node_names=["es1-node-1"])
    try:
        collector = NodeInClusterCollector(
            "http://127.0.0.1:19882", httpx.Client(timeout=2.0), "node-9"
        )
        values = _values(collector.collect())
        assert values["elasticsearch_node_in_cluster_up"] == 1
        assert values["elasticsearch_node_in_cluster_nodesexists"] == 0
        collector.close()
    finally:
        server.shutdown()
        server.server_close()


def test_forced_status_and_garbage():
    server = _start_test_server(19883)
    try:
        failing = NodeInClusterCollector(
            "http://127.0.0.1:19883/?fail=503", httpx.Client(timeout=2.0), "node-1"
        )
        values = _values(failing.collect())
        assert values["elasticsearch_node_in_cluster_up"] == 0
        assert values["elasticsearch_node_in_cluster_json_parse_failures"] == 0
        failing.close()

        garbage = NodeInClusterCollector(
            "http://127.0.0.1:19883/?garbage=1", httpx.Client(timeout=2.0), "node-1"
        )
        values = _values(garbage.collect())
        assert values["elasticsearch_node_in_cluster_up"] == 0
        assert values["elasticsearch_node_in_cluster_json_parse_failures"] == 1
        garbage.close()
    finally:
        server.shutdown()
        server.server_close()


def test_unreachable_server():
    # Nothing listens here
    collector = NodeInClusterCollector(
        "http://127.0.0.1:19889", httpx.Client(timeout=1.0), "node-1"
    )
    values = _values(collector.collect())
    assert values["elasticsearch_node_in_cluster_up"] == 0
    assert "elasticsearch_node_in_cluster_nodesexists" not in values
    collector.close()


def test_build_cluster_state_shape():
    state = build_cluster_state("es1", ["a", "b"])
    assert state["cluster_name"] == "es1"
    assert sorted(n["name"] for n in state["nodes"].values()) == ["a", "b"]
    for node in state["nodes"].values():
        assert set(node["attributes"]) == {"ml.max_open_jobs", "rack_id", "ml.enabled"}


def test_non_numeric_fail_flag_returns_500():
    server = _start_test_server(19884)
    try:
        with httpx.Client(timeout=2.0) as client:
            response = client.get("http://127.0.0.1:19884/_cluster/state/nodes?fail=abc")
            assert response.status_code == 500

            response = client.get("http://127.0.0.1:19884/_cluster/state/nodes?fail=42")
            assert response.status_code == 500
    finally:
        server.shutdown()
        server.server_close()
