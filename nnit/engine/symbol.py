"""Symbol graph (``*-symbol.json``) parsing and evaluation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import torch

from nnit.engine import ops
from nnit.engine.types import ModelFormatError

logger = logging.getLogger(__name__)

DATA_NAMES = ("data",)
LABEL_SUFFIX = "_label"


@dataclass
class SymbolNode:
    """One node of the graph. ``op == "null"`` marks a variable."""

    op: str
    name: str
    inputs: List[tuple[int, int]] = field(default_factory=list)
    attrs: Dict[str, str] = field(default_factory=dict)

    @property
    def is_variable(self) -> bool:
        return self.op == "null"


class Symbol:
    """An immutable view of a computation graph with one or more heads.

    Args:
        nodes: Graph nodes in topological order.
        heads: ``(node_id, output_index)`` pairs producing the outputs.
        data_names: Variable names fed from the forward inputs.
    """

    def __init__(
        self,
        nodes: Sequence[SymbolNode],
        heads: Sequence[tuple[int, int]],
        data_names: Sequence[str] = DATA_NAMES,
    ) -> None:
        if not heads:
            raise ModelFormatError("Symbol has no heads")
        for node_id, _ in heads:
            if not 0 <= node_id < len(nodes):
                raise ModelFormatError(f"Head references missing node {node_id}")
        self.nodes: List[SymbolNode] = list(nodes)
        self.heads: List[tuple[int, int]] = list(heads)
        self.data_names: List[str] = list(data_names)
        self._reachable = self._collect_reachable()

    # -- parsing -------------------------------------------------------------

    @classmethod
    def from_json(cls, raw: Mapping, data_names: Sequence[str] = DATA_NAMES) -> "Symbol":
        try:
            raw_nodes = raw["nodes"]
            raw_heads = raw["heads"]
        except KeyError as exc:
            raise ModelFormatError(f"Symbol JSON missing key: {exc}") from exc

        nodes = []
        for idx, rn in enumerate(raw_nodes):
            inputs = []
            for entry in rn.get("inputs", []):
                src = int(entry[0])
                if not 0 <= src < idx:
                    raise ModelFormatError(
                        f"Node {rn.get('name')} references node {src} out of order"
                    )
                inputs.append((src, int(entry[1]) if len(entry) > 1 else 0))
            # attribute key changed across serializer versions
            attrs = rn.get("attrs") or rn.get("attr") or rn.get("param") or {}
            node = SymbolNode(
                op=rn.get("op", "null"),
                name=rn.get("name", f"node{idx}"),
                inputs=inputs,
                attrs={str(k): str(v) for k, v in attrs.items()},
            )
            if not node.is_variable and not ops.is_supported(node.op):
                raise ModelFormatError(f"Unsupported operator: {node.op} ({node.name})")
            nodes.append(node)

        heads = [(int(h[0]), int(h[1]) if len(h) > 1 else 0) for h in raw_heads]
        return cls(nodes, heads, data_names)

    # -- graph queries -------------------------------------------------------

    def _collect_reachable(self) -> List[int]:
        seen = set()
        stack = [node_id for node_id, _ in self.heads]
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            stack.extend(src for src, _ in self.nodes[node_id].inputs)
        return sorted(seen)

    def _is_data(self, node: SymbolNode) -> bool:
        return node.name in self.data_names

    @staticmethod
    def _is_label(node: SymbolNode) -> bool:
        return node.name.endswith(LABEL_SUFFIX)

    @property
    def parameter_names(self) -> List[str]:
        """Learnable variable names reachable from the heads, in graph order."""
        return [
            self.nodes[i].name for i in self._reachable
            if self.nodes[i].is_variable
            and not self._is_data(self.nodes[i])
            and not self._is_label(self.nodes[i])
        ]

    @property
    def layer_names(self) -> List[str]:
        """Operator node names reachable from the heads, in graph order."""
        return [self.nodes[i].name for i in self._reachable if not self.nodes[i].is_variable]

    def get_internal(self, name: str) -> "Symbol":
        """Return a symbol whose single head is the output of node *name*."""
        for idx, node in enumerate(self.nodes):
            if node.name == name:
                return Symbol(self.nodes[: idx + 1], [(idx, 0)], self.data_names)
        raise KeyError(name)

    # -- evaluation ----------------------------------------------------------

    def evaluate(
        self,
        inputs: Sequence[torch.Tensor],
        params: Mapping[str, torch.Tensor],
        training: bool = False,
    ) -> List[torch.Tensor]:
        """Run the graph on *inputs* using *params* for the learnable variables."""
        if len(inputs) != len(self.data_names):
            raise ValueError(
                f"Expected {len(self.data_names)} input(s), got {len(inputs)}"
            )
        feeds = dict(zip(self.data_names, inputs))
        values: Dict[int, torch.Tensor | None] = {}

        for idx in self._reachable:
            node = self.nodes[idx]
            if node.is_variable:
                if node.name in feeds:
                    values[idx] = feeds[node.name]
                elif self._is_label(node):
                    values[idx] = None
                else:
                    values[idx] = params[node.name]
                continue
            args = [values[src] for src, _ in node.inputs]
            values[idx] = ops.get_op(node.op)(node.attrs, args, training)

        return [values[node_id] for node_id, _ in self.heads]

    def to_json(self) -> dict:
        """Serialize back to the symbol JSON layout."""
        return {
            "nodes": [
                {
                    "op": n.op,
                    "name": n.name,
                    "attrs": dict(n.attrs),
                    "inputs": [[src, out, 0] for src, out in n.inputs],
                }
                for n in self.nodes
            ],
            "arg_nodes": [i for i, n in enumerate(self.nodes) if n.is_variable],
            "heads": [[node_id, out, 0] for node_id, out in self.heads],
        }


def load_symbol(path: str | Path, data_names: Sequence[str] = DATA_NAMES) -> Symbol:
    """Parse a symbol JSON file."""
    try:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ModelFormatError(f"Invalid symbol JSON {path}: {exc}") from exc
    symbol = Symbol.from_json(raw, data_names)
    logger.debug("Loaded symbol %s with layers %s", path, symbol.layer_names)
    return symbol


def save_symbol(path: str | Path, symbol: Symbol) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(symbol.to_json(), fh, indent=2)
    return path
