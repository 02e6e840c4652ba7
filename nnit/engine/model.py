"""Model: a block plus the manager owning its tensors."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

import numpy as np

from nnit.config import get_config
from nnit.engine.manager import NDManager
from nnit.engine.nn import Block, SymbolBlock
from nnit.engine.params import load_params, save_params
from nnit.engine.symbol import DATA_NAMES, load_symbol, save_symbol
from nnit.engine.types import EngineError

logger = logging.getLogger(__name__)


def artifact_paths(model_path_prefix: str | Path, epoch: int = 0) -> tuple[Path, Path]:
    """Return ``(symbol_file, params_file)`` for a path prefix such as ``dir/mnist``."""
    prefix = Path(model_path_prefix).expanduser()
    symbol_file = prefix.parent / f"{prefix.name}-symbol.json"
    params_file = prefix.parent / f"{prefix.name}-{epoch:04d}.params"
    return symbol_file, params_file


class Model:
    """Holds a :class:`Block` and the :class:`NDManager` that owns its tensors.

    Use as a context manager so the tensors are released on every exit path::

        with Model.load(Path(model_dir) / "mnist") as model:
            out = model.block.forward([model.manager.ones((1, 28, 28))])
    """

    def __init__(self, name: str, block: Block, manager: NDManager) -> None:
        self.name = name
        self._block: Block | None = block
        self._manager = manager

    @classmethod
    def load(
        cls,
        model_path_prefix: str | Path,
        epoch: int = 0,
        device: str | None = None,
        data_names: Sequence[str] = DATA_NAMES,
    ) -> "Model":
        """Load ``<prefix>-symbol.json`` and ``<prefix>-<epoch>.params``.

        Raises:
            FileNotFoundError: Either artifact file is missing.
            ModelFormatError: An artifact file cannot be decoded.
        """
        if device is None:
            device = get_config().device

        symbol_file, params_file = artifact_paths(model_path_prefix, epoch)
        for path in (symbol_file, params_file):
            if not path.is_file():
                raise FileNotFoundError(f"Model file not found: {path}")

        manager = NDManager(device)
        try:
            symbol = load_symbol(symbol_file, data_names)
            arrays = load_params(params_file)
            block = SymbolBlock.from_arrays(symbol, arrays, manager)
        except Exception:
            manager.close()
            raise
        logger.info(
            "Loaded model %s (%d parameters) on %s",
            Path(model_path_prefix).name, len(block.get_parameters()), manager.device,
        )
        return cls(Path(model_path_prefix).name, block, manager)

    def __enter__(self) -> "Model":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def block(self) -> Block:
        if self._block is None:
            raise EngineError(f"Model {self.name} has been closed")
        return self._block

    @property
    def manager(self) -> NDManager:
        return self._manager

    def save(self, model_dir: str | Path, epoch: int = 0) -> Path:
        """Write the model back as symbol JSON + params. Returns the path prefix."""
        block = self.block
        if not isinstance(block, SymbolBlock):
            raise EngineError("Only SymbolBlock models can be saved")
        prefix = Path(model_dir) / self.name
        symbol_file, params_file = artifact_paths(prefix, epoch)
        save_symbol(symbol_file, block.symbol)
        save_params(
            params_file,
            {name: p.detach().cpu().numpy() for name, p in block.get_parameters()},
        )
        return prefix

    def close(self) -> None:
        self._manager.close()
        self._block = None


def save_model(
    model_dir: str | Path,
    name: str,
    symbol_json: dict,
    params: dict[str, np.ndarray],
    epoch: int = 0,
) -> Path:
    """Write raw symbol JSON and arrays as a loadable artifact. Returns the prefix."""
    prefix = Path(model_dir) / name
    symbol_file, params_file = artifact_paths(prefix, epoch)
    symbol_file.parent.mkdir(parents=True, exist_ok=True)
    with open(symbol_file, "w", encoding="utf-8") as fh:
        json.dump(symbol_json, fh)
    save_params(params_file, params)
    return prefix
