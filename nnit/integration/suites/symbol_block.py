"""Symbol block scenarios against the pretrained MNIST MLP.

Run with::

    python -m nnit.integration.suites.symbol_block [-m train_with_new_param] [-r 3]
"""

from __future__ import annotations

import sys
from typing import Sequence

import torch

from nnit import log
from nnit.config import HarnessConfig
from nnit.engine import (
    ONES,
    Block,
    GradientCollector,
    Linear,
    Model,
    NDArray,
    NDManager,
    SequentialBlock,
    SymbolBlock,
    softmax_cross_entropy_loss,
)
from nnit.integration.artifacts import model_path_prefix
from nnit.integration.assertions import assert_almost_equals, assert_equals, assert_true
from nnit.integration.runner import IntegrationTest, class_name, run_as_test

# Golden values of the 784-128-64-10 MLP on ones((10, 784)) with labels 0..9
NEW_PARAM_PRED_MEAN = 6430785.5
NEW_PARAM_GRAD_MEANS = [
    2.38418579e-06,
    2.38418579e-06,
    2.92435288e-05,
    3.72529030e-08,
    1.43556367e-03,
    -2.30967991e-08,
]
EXIST_PARAM_PRED_MEAN = 0.29814255237579346
EXIST_PARAM_GRAD_MEANS = [
    1.51564837e-01,
    1.51564837e-01,
    9.12832543e-02,
    4.07614917e-01,
    -1.78348269e-08,
    -1.19209291e-08,
]

BATCH_SIZE = 10
IMAGE_SIZE = 28
NUM_CLASSES = 10


def train(manager: NDManager, block: Block) -> tuple[NDArray, NDArray]:
    """One forward/backward pass on ones with labels ``0..9``.

    Returns:
        ``(mean of predictions, stacked per-parameter gradient means)``.
    """
    data = manager.ones((BATCH_SIZE, IMAGE_SIZE * IMAGE_SIZE))
    label = manager.arange(0, BATCH_SIZE)
    with GradientCollector() as collector:
        pred = block.forward([data])[0]
        loss = softmax_cross_entropy_loss(
            label, pred, weight=1.0, batch_axis=0, class_axis=-1,
            sparse_label=True, from_logit=False,
        )
        collector.backward(loss)

    grads = [
        param.grad if param.grad is not None else torch.zeros_like(param)
        for _, param in block.get_parameters()
    ]
    grad_means = torch.stack([g.detach().mean() for g in grads])
    return pred.detach().mean(), grad_means


class SymbolBlockTest:
    """Load, infer and train the MNIST MLP symbol block."""

    def __init__(self, config: HarnessConfig | None = None) -> None:
        self.config = config

    def _load(self) -> Model:
        return Model.load(model_path_prefix(self.config))

    @run_as_test
    def test_inference(self) -> None:
        with self._load() as model:
            arr = model.manager.ones((1, IMAGE_SIZE, IMAGE_SIZE))
            shape = tuple(model.block.forward([arr])[0].shape)
            assert_true(shape == (1, NUM_CLASSES), f"Unexpected output shape {shape}")

    @run_as_test
    def train_with_new_param(self) -> None:
        with self._load() as model:
            manager = model.manager
            mlp = model.block
            mlp.set_initializer(ONES, overwrite=True)
            pred_mean, grad_means = train(manager, mlp)
            assert_almost_equals(manager.create(NEW_PARAM_PRED_MEAN), pred_mean)
            assert_almost_equals(manager.create(NEW_PARAM_GRAD_MEANS), grad_means)

    @run_as_test
    def train_with_exist_param(self) -> None:
        with self._load() as model:
            manager = model.manager
            pred_mean, grad_means = train(manager, model.block)
            assert_almost_equals(manager.create(EXIST_PARAM_PRED_MEAN), pred_mean)
            assert_almost_equals(manager.create(EXIST_PARAM_GRAD_MEANS), grad_means)

    @run_as_test
    def train_with_custom_layer(self) -> None:
        with self._load() as model:
            manager = model.manager
            mlp = model.block
            assert_true(isinstance(mlp, SymbolBlock), "Loaded block is not a SymbolBlock")

            new_mlp = SequentialBlock(mlp.remove_last_block())
            linear = Linear(out_channels=NUM_CLASSES, manager=manager)
            linear.set_initializer(ONES, overwrite=True)
            new_mlp.add(linear)

            # removing the head leaves the source block intact
            pred_mean, grad_means = train(manager, mlp)
            assert_almost_equals(manager.create(EXIST_PARAM_PRED_MEAN), pred_mean)
            assert_almost_equals(manager.create(EXIST_PARAM_GRAD_MEANS), grad_means)

            out = new_mlp.forward([manager.ones((BATCH_SIZE, IMAGE_SIZE * IMAGE_SIZE))])[0]
            assert_equals((BATCH_SIZE, NUM_CLASSES), tuple(out.shape))
            assert_equals(len(mlp.get_parameters()), len(new_mlp.get_parameters()))


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    log.setup()
    return IntegrationTest().main(["-c", class_name(SymbolBlockTest), *args])


if __name__ == "__main__":
    sys.exit(main())
