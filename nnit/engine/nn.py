"""Blocks: composable units of computation built on ``torch.nn.Module``.

Every block maps an :data:`NDList` to an :data:`NDList`.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Tuple

import numpy as np
import torch
import torch.nn.functional as F
from torch import nn

from nnit.engine.initializer import Initializer, XavierInitializer
from nnit.engine.manager import NDManager
from nnit.engine.symbol import Symbol
from nnit.engine.training import is_training
from nnit.engine.types import EngineError, ModelFormatError, NDList

logger = logging.getLogger(__name__)


class Block(nn.Module):
    """Base block. Subclasses implement :meth:`forward`."""

    def __init__(self) -> None:
        super().__init__()
        self._initializer: Initializer | None = None

    def forward(self, inputs: NDList) -> NDList:  # pylint: disable=arguments-differ
        raise NotImplementedError

    def get_parameters(self) -> List[Tuple[str, nn.Parameter]]:
        return list(self.named_parameters())

    def set_initializer(self, initializer: Initializer, overwrite: bool = False) -> None:
        """Use *initializer* for this block and its children.

        Parameters that already hold values are only re-initialized when
        *overwrite* is set. Parameters created later (see :class:`Linear`)
        always use it.
        """
        for module in self.modules():
            if isinstance(module, Block):
                module._initializer = initializer
        if overwrite:
            for name, param in self.named_parameters():
                initializer(name, param)


class SequentialBlock(Block):
    """Feeds the output of each child block into the next."""

    def __init__(self, *blocks: Block) -> None:
        super().__init__()
        self.blocks = nn.ModuleList()
        for block in blocks:
            self.add(block)

    def add(self, block: Block) -> "SequentialBlock":
        self.blocks.append(block)
        return self

    def remove_last_block(self) -> Block:
        if not self.blocks:
            raise EngineError("SequentialBlock is empty")
        last = self.blocks[-1]
        del self.blocks[-1]
        return last

    def __len__(self) -> int:
        return len(self.blocks)

    def forward(self, inputs: NDList) -> NDList:
        for block in self.blocks:
            inputs = block(inputs)
        return inputs


class Linear(Block):
    """Fully connected layer. Input features are inferred on first forward
    when *in_channels* is omitted; inputs with more than two dimensions are
    flattened.

    Args:
        out_channels: Number of output features.
        in_channels: Number of input features, inferred when omitted.
        bias: Whether to add a learnable bias.
        manager: Owner of the weight and bias once they are created; they
            are released when the manager closes.
    """

    def __init__(
        self,
        out_channels: int,
        in_channels: int | None = None,
        bias: bool = True,
        manager: NDManager | None = None,
    ) -> None:
        super().__init__()
        if out_channels <= 0:
            raise ValueError(f"out_channels must be positive, got {out_channels}")
        self.out_channels = out_channels
        self.in_channels: int | None = None
        self.use_bias = bias
        self.manager = manager
        self.register_parameter("weight", None)
        self.register_parameter("bias", None)
        if in_channels is not None:
            if manager is None:
                self._materialize(in_channels)
            else:
                self._materialize(in_channels, device=manager.device, dtype=manager.dtype)

    def _materialize(self, in_channels: int, device=None, dtype=None) -> None:
        self.in_channels = in_channels
        self.weight = nn.Parameter(torch.empty(self.out_channels, in_channels, device=device, dtype=dtype))
        if self.use_bias:
            self.bias = nn.Parameter(torch.empty(self.out_channels, device=device, dtype=dtype))
        init = self._initializer or XavierInitializer()
        for name, param in self.named_parameters(recurse=False):
            init(name, param)
            if self.manager is not None:
                self.manager.attach(param)

    def forward(self, inputs: NDList) -> NDList:
        x = inputs[0]
        if x.dim() > 2:
            x = x.reshape(x.shape[0], -1)
        if self.weight is None:
            self._materialize(x.shape[-1], device=x.device, dtype=x.dtype)
        return [F.linear(x, self.weight, self.bias)]

    def extra_repr(self) -> str:
        return f"in_channels={self.in_channels}, out_channels={self.out_channels}"


class SymbolBlock(Block):
    """A block evaluating a serialized symbol graph with its parameters.

    Args:
        symbol: The graph to evaluate.
        params: Learnable tensors keyed by variable name. Blocks derived
            with :meth:`remove_last_block` share these objects.
    """

    def __init__(self, symbol: Symbol, params: Mapping[str, nn.Parameter]) -> None:
        super().__init__()
        self.symbol = symbol
        self.params = nn.ParameterDict()
        for name in symbol.parameter_names:
            if name not in params:
                raise ModelFormatError(f"Missing parameter: {name}")
            self.params[name] = params[name]

    @classmethod
    def from_arrays(
        cls, symbol: Symbol, arrays: Mapping[str, np.ndarray], manager: NDManager,
    ) -> "SymbolBlock":
        """Build a block whose parameters are owned by *manager*."""
        params = {}
        for name in symbol.parameter_names:
            if name not in arrays:
                raise ModelFormatError(f"Missing parameter: {name}")
            tensor = torch.from_numpy(arrays[name]).to(manager.device)
            if tensor.is_floating_point():
                tensor = tensor.to(manager.dtype)
            params[name] = manager.attach(nn.Parameter(tensor))
        unused = sorted(set(arrays) - set(params))
        if unused:
            logger.debug("Ignoring params not referenced by the symbol: %s", unused)
        return cls(symbol, params)

    def get_parameters(self) -> List[Tuple[str, nn.Parameter]]:
        return list(self.params.items())

    def forward(self, inputs: NDList) -> NDList:
        return self.symbol.evaluate(inputs, self.params, training=is_training())

    def remove_last_block(self) -> "SymbolBlock":
        """Return a block that stops before the final layer.

        This block is left unchanged; the returned one shares its parameters.
        """
        layers = self.symbol.layer_names
        if len(layers) < 2:
            raise EngineError("Cannot remove the only layer of a SymbolBlock")
        return SymbolBlock(self.symbol.get_internal(layers[-2]), self.params)
