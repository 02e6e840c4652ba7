"""Operator registry for symbol-graph evaluation.

Each operator receives the node attributes, its input tensors and the
training flag, and returns a single tensor. All arithmetic is torch.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping

import torch
import torch.nn.functional as F

from nnit.engine.types import ModelFormatError

OpFn = Callable[[Mapping[str, str], List[torch.Tensor], bool], torch.Tensor]

_op_registry: Dict[str, OpFn] = {}


def register_op(*names: str) -> Callable[[OpFn], OpFn]:
    """Register an operator implementation under one or more op names."""

    def decorator(fn: OpFn) -> OpFn:
        for name in names:
            _op_registry[name] = fn
        return fn

    return decorator


def get_op(name: str) -> OpFn:
    if name not in _op_registry:
        raise ModelFormatError(f"Unsupported operator: {name}")
    return _op_registry[name]


def is_supported(name: str) -> bool:
    return name in _op_registry


def list_ops() -> List[str]:
    return sorted(_op_registry)


# ---------------------------------------------------------------------------
# Attribute parsing
# ---------------------------------------------------------------------------

def attr_bool(attrs: Mapping[str, str], key: str, default: bool) -> bool:
    raw = attrs.get(key)
    if raw is None:
        return default
    return str(raw).strip().lower() in ("true", "1")


def attr_int(attrs: Mapping[str, str], key: str, default: int | None = None) -> int:
    raw = attrs.get(key)
    if raw is None:
        if default is None:
            raise ModelFormatError(f"Missing required attribute: {key}")
        return default
    return int(raw)


def attr_float(attrs: Mapping[str, str], key: str, default: float) -> float:
    raw = attrs.get(key)
    return default if raw is None else float(raw)


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

_ACTIVATIONS = {
    "relu": torch.relu,
    "sigmoid": torch.sigmoid,
    "tanh": torch.tanh,
    "softrelu": F.softplus,
    "softsign": F.softsign,
}


@register_op("FullyConnected")
def fully_connected(attrs, inputs, training):
    x = inputs[0]
    if attr_bool(attrs, "flatten", True) and x.dim() > 2:
        x = x.reshape(x.shape[0], -1)
    weight = inputs[1]
    bias = None if attr_bool(attrs, "no_bias", False) else inputs[2]
    num_hidden = attr_int(attrs, "num_hidden")
    if weight.shape[0] != num_hidden:
        raise ModelFormatError(
            f"FullyConnected weight has {weight.shape[0]} rows, expected {num_hidden}"
        )
    return F.linear(x, weight, bias)


@register_op("Activation")
def activation(attrs, inputs, training):
    act_type = attrs.get("act_type", "relu")
    if act_type not in _ACTIVATIONS:
        raise ModelFormatError(f"Unsupported activation: {act_type}")
    return _ACTIVATIONS[act_type](inputs[0])


@register_op("relu")
def relu(attrs, inputs, training):
    return torch.relu(inputs[0])


@register_op("sigmoid")
def sigmoid(attrs, inputs, training):
    return torch.sigmoid(inputs[0])


@register_op("tanh")
def tanh(attrs, inputs, training):
    return torch.tanh(inputs[0])


@register_op("Flatten", "flatten")
def flatten(attrs, inputs, training):
    x = inputs[0]
    return x.reshape(x.shape[0], -1)


@register_op("Dropout")
def dropout(attrs, inputs, training):
    return F.dropout(inputs[0], p=attr_float(attrs, "p", 0.5), training=training)


@register_op("softmax", "SoftmaxActivation")
def softmax(attrs, inputs, training):
    return torch.softmax(inputs[0], dim=attr_int(attrs, "axis", -1))


@register_op("SoftmaxOutput")
def softmax_output(attrs, inputs, training):
    # inputs[1] is the label variable; it only matters for the fused gradient
    return torch.softmax(inputs[0], dim=-1)


@register_op("elemwise_add", "_Plus", "_plus", "broadcast_add")
def add(attrs, inputs, training):
    return inputs[0] + inputs[1]
