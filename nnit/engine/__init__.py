"""Framework adapter: MXNet-format model artifacts evaluated with torch.

Usage::

    from nnit.engine import GradientCollector, Model, softmax_cross_entropy_loss

    with Model.load("~/.nnit_data/mnist/mnist") as model:
        data = model.manager.ones((10, 784))
        label = model.manager.arange(0, 10)
        with GradientCollector() as collector:
            pred = model.block.forward([data])[0]
            collector.backward(softmax_cross_entropy_loss(label, pred))
"""

from nnit.engine import initializer
from nnit.engine.initializer import ONES, ZEROS, ConstantInitializer, Initializer, XavierInitializer
from nnit.engine.manager import NDManager
from nnit.engine.model import Model
from nnit.engine.nn import Block, Linear, SequentialBlock, SymbolBlock
from nnit.engine.training import GradientCollector, is_training, softmax_cross_entropy_loss
from nnit.engine.types import EngineError, ManagerClosedError, ModelFormatError, NDArray, NDList

__all__ = [
    "initializer",
    "Initializer",
    "ConstantInitializer",
    "XavierInitializer",
    "ONES",
    "ZEROS",
    "NDManager",
    "Model",
    "Block",
    "Linear",
    "SequentialBlock",
    "SymbolBlock",
    "GradientCollector",
    "is_training",
    "softmax_cross_entropy_loss",
    "EngineError",
    "ManagerClosedError",
    "ModelFormatError",
    "NDArray",
    "NDList",
]
