"""Type aliases and exceptions for the engine module."""

from __future__ import annotations

from typing import List, Tuple

import torch

NDArray = torch.Tensor
NDList = List[torch.Tensor]
Shape = Tuple[int, ...]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class EngineError(Exception):
    """Base exception for engine operations."""


class ModelFormatError(EngineError, ValueError):
    """Raised when a symbol or params file cannot be decoded."""


class ManagerClosedError(EngineError):
    """Raised when an NDManager is used after it was closed."""
