"""
Fake Elasticsearch /_cluster/state/nodes endpoint for testing without a cluster.

    python -m nodewatch.mock.fake_cluster_server --node es1-node-1 --node es1-node-2
    nodewatch --url http://localhost:9201 --node node-2 check

Query flags for exercising failure paths:
    ?fail=503     respond with that status instead
    ?garbage=1    respond 200 with a body that isn't JSON
"""

from __future__ import annotations

import json
import uuid
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import List, Optional, Sequence, Type
from urllib.parse import parse_qs, urlsplit

import click

DEFAULT_CLUSTER = "es1"
DEFAULT_NODES = ["es1-node-1", "es1-node-2", "es1-node-3"]


def build_cluster_state(cluster_name: str, node_names: Sequence[str]) -> dict:
    """Build a payload shaped like a real /_cluster/state/nodes response."""
    nodes = {}
    for i, name in enumerate(node_names):
        node_id = uuid.uuid5(uuid.NAMESPACE_DNS, f"{cluster_name}.{name}").hex[:22]
        nodes[node_id] = {
            "name": name,
            "ephemeral_id": uuid.uuid5(uuid.NAMESPACE_OID, name).hex[:22],
            "transport_address": f"10.0.0.{i + 1}:9300",
            "attributes": {
                "ml.max_open_jobs": "20",
                "rack_id": f"rack{i % 2 + 1}",
                "ml.enabled": "true",
            },
        }
    return {
        "cluster_name": cluster_name,
        "cluster_uuid": uuid.uuid5(uuid.NAMESPACE_DNS, cluster_name).hex[:22],
        "nodes": nodes,
    }


def _forced_status(raw: str) -> int:
    """Status for ?fail=; anything that isn't a usable HTTP code becomes 500."""
    try:
        status = int(raw)
    except ValueError:
        return 500
    return status if 200 <= status <= 599 else 500


def make_handler(
    cluster_name: str = DEFAULT_CLUSTER,
    node_names: Sequence[str] = tuple(DEFAULT_NODES),
) -> Type[BaseHTTPRequestHandler]:
    """Handler class bound to a fixed cluster layout."""
    payload = json.dumps(build_cluster_state(cluster_name, node_names)).encode()

    class _ClusterStateHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            parts = urlsplit(self.path)
            if parts.path.rstrip("/") != "/_cluster/state/nodes":
                self._respond(404, b'{"error":"not found"}')
                return

            query = parse_qs(parts.query)
            if "fail" in query:
                self._respond(_forced_status(query["fail"][0]), b'{"error":"forced failure"}')
            elif "garbage" in query:
                self._respond(200, b"<html>this is not json</html>")
            else:
                self._respond(200, payload)

        def _respond(self, status: int, body: bytes):
            self.send_response(status)
            self.send_header("Content-Type", "application/json; charset=UTF-8")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args):
            pass  # Suppress request logging noise

    return _ClusterStateHandler


def run_fake_server(
    host: str = "127.0.0.1",
    port: int = 9201,
    cluster_name: str = DEFAULT_CLUSTER,
    node_names: Optional[List[str]] = None,
):
    server = HTTPServer((host, port), make_handler(cluster_name, node_names or DEFAULT_NODES))
    print(f"Fake cluster state server running at http://{host}:{port}/_cluster/state/nodes")
    print("Press Ctrl+C to stop.\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    server.server_close()
    print("\nServer stopped.")


@click.command()
@click.option("--host", default="127.0.0.1", help="Address to bind")
@click.option("--port", default=9201, help="Port to bind")
@click.option("--cluster", default=DEFAULT_CLUSTER, help="cluster_name to report")
@click.option("--node", "nodes", multiple=True, help="Node name to report (repeatable)")
def main(host: str, port: int, cluster: str, nodes):
    """Serve a fake /_cluster/state/nodes endpoint."""
    run_fake_server(host, port, cluster, list(nodes))


if __name__ == "__main__":
    main()
