"""Shared fixtures: isolated configuration and synthetic MLP artifacts."""

from __future__ import annotations

import zipfile
from pathlib import Path

import numpy as np
import pytest

from nnit.config import HarnessConfig, reset_config, set_config
from nnit.engine.model import artifact_paths, save_model


def pytest_addoption(parser):
    parser.addoption(
        "--run-network",
        action="store_true",
        default=False,
        help="Run tests that download the real MNIST checkpoint",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-network"):
        return
    skip = pytest.mark.skip(reason="needs --run-network")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def harness_config(request, tmp_path: Path):
    """Point the harness at a temporary data directory for every offline test."""
    if request.node.get_closest_marker("network"):
        reset_config()
        yield None
        reset_config()
        return
    cfg = set_config(HarnessConfig(data_dir=str(tmp_path / "data")))
    yield cfg
    reset_config()


def mlp_symbol_json(sizes: tuple[int, ...], softmax: bool = False) -> dict:
    """Symbol JSON of a ReLU MLP named fc1..fcN, in the serializer's layout."""
    nodes = [{"op": "null", "name": "data", "inputs": []}]
    prev = 0
    n_layers = len(sizes) - 1
    for i in range(1, n_layers + 1):
        w_id = len(nodes)
        nodes.append({"op": "null", "name": f"fc{i}_weight", "inputs": []})
        nodes.append({"op": "null", "name": f"fc{i}_bias", "inputs": []})
        nodes.append({
            "op": "FullyConnected",
            "name": f"fc{i}",
            "attrs": {"num_hidden": str(sizes[i])},
            "inputs": [[prev, 0, 0], [w_id, 0, 0], [w_id + 1, 0, 0]],
        })
        prev = len(nodes) - 1
        if i < n_layers:
            nodes.append({
                "op": "Activation",
                "name": f"relu{i}",
                "attrs": {"act_type": "relu"},
                "inputs": [[prev, 0, 0]],
            })
            prev = len(nodes) - 1
    if softmax:
        label_id = len(nodes)
        nodes.append({"op": "null", "name": "softmax_label", "inputs": []})
        nodes.append({
            "op": "SoftmaxOutput",
            "name": "softmax",
            "inputs": [[prev, 0, 0], [label_id, 0, 0]],
        })
        prev = len(nodes) - 1
    arg_nodes = [i for i, n in enumerate(nodes) if n["op"] == "null"]
    return {
        "nodes": nodes,
        "arg_nodes": arg_nodes,
        "heads": [[prev, 0, 0]],
        "attrs": {"mxnet_version": ["int", 10500]},
    }


def mlp_params(sizes: tuple[int, ...], seed: int = 0) -> dict[str, np.ndarray]:
    rng = np.random.default_rng(seed)
    params: dict[str, np.ndarray] = {}
    for i in range(1, len(sizes)):
        params[f"fc{i}_weight"] = (rng.standard_normal((sizes[i], sizes[i - 1])) * 0.05).astype(np.float32)
        params[f"fc{i}_bias"] = (rng.standard_normal(sizes[i]) * 0.05).astype(np.float32)
    return params


MNIST_SIZES = (784, 16, 8, 10)


@pytest.fixture()
def make_mlp():
    """Factory writing an MLP artifact; returns ``(path_prefix, params)``."""

    def _make(model_dir: Path, name: str = "mnist", sizes: tuple[int, ...] = MNIST_SIZES,
              seed: int = 0, softmax: bool = False):
        params = mlp_params(sizes, seed)
        prefix = save_model(model_dir, name, mlp_symbol_json(sizes, softmax), params)
        return prefix, params

    return _make


@pytest.fixture()
def mnist_archive(tmp_path: Path, make_mlp) -> Path:
    """A zip laid out like the real download: both artifact files at the root."""
    prefix, _ = make_mlp(tmp_path / "archive_src")
    archive = tmp_path / "mnistmlp.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        for path in artifact_paths(prefix):
            zf.write(path, arcname=path.name)
    return archive


@pytest.fixture()
def staged_mnist(harness_config: HarnessConfig, make_mlp) -> Path:
    """Synthetic MNIST MLP already extracted in the configured data directory."""
    model_dir = harness_config.data_path / harness_config.model_name
    prefix, _ = make_mlp(model_dir, name=harness_config.model_name)
    return prefix


@pytest.fixture()
def mlp_json():
    """The :func:`mlp_symbol_json` builder."""
    return mlp_symbol_json
