"""
Shape of the /_cluster/state/nodes response.

Only the fields we care about are modeled. Decoding is lenient the way
Go's encoding/json is: unknown keys are dropped, missing or null strings
become "", and a missing nodes map is just empty. Wrong types are still
an error though.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Union

from nodewatch.errors import DecodeError


def _string(obj: Mapping[str, Any], key: str, where: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(
            f"{where}.{key}: expected string, got {type(value).__name__}"
        )
    return value


def _object(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"{where}: expected object, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class NodeAttributes:
    ml_max_open_jobs: str = ""
    rack_id: str = ""
    ml_enabled: str = ""

    @classmethod
    def from_dict(cls, data: Any, where: str = "attributes") -> "NodeAttributes":
        data = _object(data, where)
        return cls(
            ml_max_open_jobs=_string(data, "ml.max_open_jobs", where),
            rack_id=_string(data, "rack_id", where),
            ml_enabled=_string(data, "ml.enabled", where),
        )


@dataclass(frozen=True)
class NodeRecord:
    name: str = ""
    ephemeral_id: str = ""
    transport_address: str = ""
    attributes: NodeAttributes = field(default_factory=NodeAttributes)

    @classmethod
    def from_dict(cls, data: Any, where: str = "node") -> "NodeRecord":
        data = _object(data, where)
        return cls(
            name=_string(data, "name", where),
            ephemeral_id=_string(data, "ephemeral_id", where),
            transport_address=_string(data, "transport_address", where),
            attributes=NodeAttributes.from_dict(
                data.get("attributes"), f"{where}.attributes"
            ),
        )


@dataclass
class ClusterSnapshot:
    """One decoded cluster state. Built fresh for every scrape."""

    cluster_name: str = ""
    nodes: Dict[str, NodeRecord] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> "ClusterSnapshot":
        if not isinstance(payload, dict):
            raise DecodeError(
                f"expected JSON object at top level, got {type(payload).__name__}"
            )
        raw_nodes = _object(payload.get("nodes"), "nodes")
        return cls(
            cluster_name=_string(payload, "cluster_name", "cluster"),
            nodes={
                node_id: NodeRecord.from_dict(record, f"nodes.{node_id}")
                for node_id, record in raw_nodes.items()
            },
        )

    @classmethod
    def from_json(cls, body: Union[str, bytes]) -> "ClusterSnapshot":
        try:
            payload = json.loads(body)
        except (ValueError, RecursionError) as e:
            # UnicodeDecodeError is a ValueError too; RecursionError on absurd nesting
            raise DecodeError(f"invalid JSON: {e}") from e
        return cls.from_dict(payload)

    def has_node(self, token: str) -> bool:
        """True if any node name contains `token` as a substring."""
        return any(token in node.name for node in self.nodes.values())
