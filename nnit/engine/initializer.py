"""Parameter initializers."""

from __future__ import annotations

import math

import torch


class Initializer:
    """Fills a parameter tensor in place."""

    def initialize(self, name: str, tensor: torch.Tensor) -> None:
        raise NotImplementedError

    def __call__(self, name: str, tensor: torch.Tensor) -> None:
        with torch.no_grad():
            self.initialize(name, tensor)


class ConstantInitializer(Initializer):
    def __init__(self, value: float) -> None:
        self.value = value

    def initialize(self, name: str, tensor: torch.Tensor) -> None:
        tensor.fill_(self.value)

    def __repr__(self) -> str:
        return f"ConstantInitializer({self.value})"


class XavierInitializer(Initializer):
    """Uniform Xavier for weights (``magnitude=3``, averaged fan); zeros for biases."""

    def __init__(self, magnitude: float = 3.0) -> None:
        self.magnitude = magnitude

    def initialize(self, name: str, tensor: torch.Tensor) -> None:
        if name.endswith("bias") or tensor.dim() < 2:
            tensor.zero_()
            return
        fan_out = tensor.shape[0]
        fan_in = tensor[0].numel()
        scale = math.sqrt(self.magnitude / ((fan_in + fan_out) / 2.0))
        tensor.uniform_(-scale, scale)


ONES = ConstantInitializer(1.0)
ZEROS = ConstantInitializer(0.0)
