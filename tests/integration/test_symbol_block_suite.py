"""Symbol block scenarios against a synthetic MNIST-shaped MLP."""

from __future__ import annotations

import pytest
import torch
import torch.nn.functional as F

from nnit import log
from nnit.engine import ONES, Linear, Model, NDManager, SequentialBlock
from nnit.engine.model import artifact_paths
from nnit.engine.params import load_params
from nnit.integration.runner import EXIT_FAILED, EXIT_OK, IntegrationTest, class_name
from nnit.integration.suites import symbol_block
from nnit.integration.suites.symbol_block import SymbolBlockTest, train
from nnit.integration.types import FailedTestException, Outcome

ORDER = ["fc1_weight", "fc1_bias", "fc2_weight", "fc2_bias", "fc3_weight", "fc3_bias"]


def _reference(params):
    """Plain torch forward/backward of the 3-layer MLP on the scenario batch."""
    leaves = {k: torch.tensor(v, requires_grad=True) for k, v in params.items()}
    x = torch.ones(10, 784)
    h = F.relu(F.linear(x, leaves["fc1_weight"], leaves["fc1_bias"]))
    h = F.relu(F.linear(h, leaves["fc2_weight"], leaves["fc2_bias"]))
    pred = F.linear(h, leaves["fc3_weight"], leaves["fc3_bias"])
    F.cross_entropy(pred, torch.arange(10)).backward()
    return float(pred.mean()), [float(leaves[k].grad.mean()) for k in ORDER]


@pytest.fixture(autouse=True)
def detach_console_logging():
    yield
    log.teardown()


@pytest.fixture()
def staged_params(staged_mnist):
    return load_params(artifact_paths(staged_mnist)[1])


class TestTrain:
    def test_matches_reference(self, staged_mnist, staged_params):
        expected_mean, expected_grads = _reference(staged_params)
        with Model.load(staged_mnist) as model:
            pred_mean, grad_means = train(model.manager, model.block)
        assert float(pred_mean) == pytest.approx(expected_mean, rel=1e-5)
        assert grad_means.tolist() == pytest.approx(expected_grads, rel=1e-4, abs=1e-6)

    def test_ones_initializer(self, staged_mnist):
        with Model.load(staged_mnist) as model:
            model.block.set_initializer(ONES, overwrite=True)
            pred_mean, grad_means = train(model.manager, model.block)
        # 784 + 1, then 16 * 785 + 1, then 8 * 12561 + 1
        assert float(pred_mean) == 100489.0
        assert grad_means.shape == (6,)

    def test_missing_gradient_counts_as_zero(self):
        frozen = Linear(10, in_channels=784)
        frozen.weight.requires_grad_(False)
        with NDManager() as manager:
            _, grad_means = train(manager, SequentialBlock(frozen))
        assert float(grad_means[0]) == 0.0


class TestScenarios:
    def test_inference_passes(self, staged_mnist):
        SymbolBlockTest().test_inference()

    def test_golden_mismatch_fails(self, staged_mnist):
        with pytest.raises(FailedTestException, match="Values differ"):
            SymbolBlockTest().train_with_exist_param()

    def test_runner_summary(self, staged_mnist):
        runner = IntegrationTest()
        code = runner.main(["-c", class_name(SymbolBlockTest)])
        assert code == EXIT_FAILED
        by_method = {r.method: r.status for r in runner.summary.results}
        assert by_method == {
            "test_inference": Outcome.PASS,
            "train_with_new_param": Outcome.FAIL,
            "train_with_exist_param": Outcome.FAIL,
            "train_with_custom_layer": Outcome.FAIL,
        }
        assert not runner.summary.aborted

    def test_all_pass_with_matching_golden_values(self, staged_mnist, staged_params, monkeypatch):
        exist_mean, exist_grads = _reference(staged_params)
        ones = {k: v * 0 + 1 for k, v in staged_params.items()}
        new_mean, new_grads = _reference(ones)
        monkeypatch.setattr(symbol_block, "NEW_PARAM_PRED_MEAN", new_mean)
        monkeypatch.setattr(symbol_block, "NEW_PARAM_GRAD_MEANS", new_grads)
        monkeypatch.setattr(symbol_block, "EXIST_PARAM_PRED_MEAN", exist_mean)
        monkeypatch.setattr(symbol_block, "EXIST_PARAM_GRAD_MEANS", exist_grads)

        assert symbol_block.main([]) == EXIT_OK

    def test_custom_head_released_with_model(self, staged_mnist):
        with Model.load(staged_mnist) as model:
            manager = model.manager
            mlp = model.block
            head = Linear(out_channels=10, manager=manager)
            new_mlp = SequentialBlock(mlp.remove_last_block(), head)
            new_mlp.forward([manager.ones((10, 784))])
            assert head.weight.shape == (10, 8)
        assert head.weight.shape == (0,)
        assert all(p.numel() == 0 for _, p in new_mlp.get_parameters())

    def test_main_method_filter(self, staged_mnist):
        assert symbol_block.main(["-m", "test_inference"]) == EXIT_OK
