"""Pydantic models for the network description handed over by the harness.

The orchestration layer that starts the nodes describes the running
network as JSON; only the fields the sampler needs are modelled here,
everything else is ignored:

{
    "nodesByName": {
        "alice": {"name": "alice", "wsUri": "ws://127.0.0.1:9944", "userDefinedTypes": {}},
        ...
    }
}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class UnknownNodeError(KeyError):
    """Raised when the requested node is not part of the network."""

    def __init__(self, node_name: str, known: list[str]) -> None:
        self.node_name = node_name
        self.known = known
        super().__init__(f"Node '{node_name}' not found in network (known: {', '.join(known) or 'none'})")

    def __str__(self) -> str:
        return self.args[0]


class NodeInfo(BaseModel):
    """Connection details and decoding metadata for one node."""

    name: str = Field(default="", description="Node name as known to the harness")
    ws_uri: str = Field(..., alias="wsUri", min_length=1, description="WebSocket RPC endpoint")
    user_defined_types: dict[str, Any] = Field(
        default_factory=dict,
        alias="userDefinedTypes",
        description="Extra type definitions the node's event decoder needs",
    )

    model_config = {"frozen": True, "populate_by_name": True, "extra": "ignore"}


class NetworkContext(BaseModel):
    """The subset of the harness network description the sampler reads."""

    nodes_by_name: dict[str, NodeInfo] = Field(default_factory=dict, alias="nodesByName")

    model_config = {"frozen": True, "populate_by_name": True, "extra": "ignore"}

    def node(self, name: str) -> NodeInfo:
        """Return the node called *name*.

        Raises:
            UnknownNodeError: If the network has no such node.
        """
        info = self.nodes_by_name.get(name)
        if info is None:
            raise UnknownNodeError(name, sorted(self.nodes_by_name))
        if not info.name:
            info = info.model_copy(update={"name": name})
        return info

    @classmethod
    def from_file(cls, path: str | Path) -> "NetworkContext":
        return cls.model_validate(json.loads(Path(path).read_text(encoding="utf-8")))
