"""Tests for engine.model: artifact loading and saving."""

from __future__ import annotations

import pytest
import torch

from nnit.engine import Model, SymbolBlock
from nnit.engine.model import artifact_paths
from nnit.engine.types import EngineError, ModelFormatError


def test_artifact_paths(tmp_path):
    symbol_file, params_file = artifact_paths(tmp_path / "mnist", epoch=3)
    assert symbol_file == tmp_path / "mnist-symbol.json"
    assert params_file == tmp_path / "mnist-0003.params"


class TestLoad:
    def test_load_synthetic(self, tmp_path, make_mlp):
        prefix, params = make_mlp(tmp_path / "m")
        with Model.load(prefix) as model:
            assert model.name == "mnist"
            assert isinstance(model.block, SymbolBlock)
            assert len(model.block.get_parameters()) == len(params)
            (out,) = model.block.forward([model.manager.ones((1, 28, 28))])
            assert tuple(out.shape) == (1, 10)

    def test_uses_configured_device(self, tmp_path, make_mlp, harness_config):
        prefix, _ = make_mlp(tmp_path / "m")
        with Model.load(prefix) as model:
            assert model.manager.device == torch.device(harness_config.device)

    def test_missing_params_file(self, tmp_path, make_mlp):
        prefix, _ = make_mlp(tmp_path / "m")
        artifact_paths(prefix)[1].unlink()
        with pytest.raises(FileNotFoundError, match="Model file not found"):
            Model.load(prefix)

    def test_missing_epoch(self, tmp_path, make_mlp):
        prefix, _ = make_mlp(tmp_path / "m")
        with pytest.raises(FileNotFoundError):
            Model.load(prefix, epoch=7)

    def test_corrupt_params(self, tmp_path, make_mlp):
        prefix, _ = make_mlp(tmp_path / "m")
        artifact_paths(prefix)[1].write_bytes(b"\x00" * 32)
        with pytest.raises(ModelFormatError):
            Model.load(prefix)


class TestLifecycle:
    def test_close_releases_block(self, tmp_path, make_mlp):
        prefix, _ = make_mlp(tmp_path / "m")
        model = Model.load(prefix)
        params = [p for _, p in model.block.get_parameters()]
        model.close()
        assert model.manager.closed
        assert all(p.numel() == 0 for p in params)
        with pytest.raises(EngineError, match="closed"):
            _ = model.block

    def test_save_round_trip(self, tmp_path, make_mlp):
        prefix, _ = make_mlp(tmp_path / "m", sizes=(8, 4, 2))
        with Model.load(prefix) as model:
            x = model.manager.ones((2, 8))
            (expected,) = model.block.forward([x])
            saved = model.save(tmp_path / "out", epoch=1)
        assert saved == tmp_path / "out" / "mnist"
        with Model.load(saved, epoch=1) as again:
            (out,) = again.block.forward([again.manager.ones((2, 8))])
            torch.testing.assert_close(out, expected.detach())
