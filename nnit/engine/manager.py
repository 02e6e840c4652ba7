"""NDManager: tensor factory owning every array it creates."""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

import numpy as np
import torch

from nnit.engine.types import ManagerClosedError, NDArray, Shape

logger = logging.getLogger(__name__)


class NDManager:
    """Allocates tensors on one device and releases them on :meth:`close`.

    Closing a manager frees the storage of every tensor it created or
    attached; those tensors are left with shape ``(0,)``.

    Args:
        device: torch device string, e.g. ``"cpu"``.
        dtype: Default floating point dtype.
    """

    def __init__(self, device: str | torch.device = "cpu", dtype: torch.dtype = torch.float32) -> None:
        self.device = torch.device(device)
        self.dtype = dtype
        self._arrays: List[torch.Tensor] = []
        self._children: List["NDManager"] = []
        self._closed = False

    def __enter__(self) -> "NDManager":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self._arrays)} arrays"
        return f"NDManager(device={self.device}, {state})"

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ManagerClosedError("NDManager has been closed")

    # -- ownership -----------------------------------------------------------

    def attach(self, array: torch.Tensor) -> torch.Tensor:
        """Take ownership of *array* so that it is released with this manager."""
        self._check_open()
        self._arrays.append(array)
        return array

    def new_sub_manager(self) -> "NDManager":
        """Create a child manager closed together with this one."""
        self._check_open()
        child = NDManager(self.device, self.dtype)
        self._children.append(child)
        return child

    def close(self) -> None:
        if self._closed:
            return
        for child in self._children:
            child.close()
        with torch.no_grad():
            for array in self._arrays:
                array.data = array.data.new_empty(0)
                array.grad = None
        logger.debug("Released %d arrays on %s", len(self._arrays), self.device)
        self._arrays.clear()
        self._children.clear()
        self._closed = True

    # -- factories -----------------------------------------------------------

    def ones(self, shape: Shape | Sequence[int], dtype: torch.dtype | None = None) -> NDArray:
        self._check_open()
        return self.attach(torch.ones(tuple(shape), dtype=dtype or self.dtype, device=self.device))

    def zeros(self, shape: Shape | Sequence[int], dtype: torch.dtype | None = None) -> NDArray:
        self._check_open()
        return self.attach(torch.zeros(tuple(shape), dtype=dtype or self.dtype, device=self.device))

    def arange(self, start: int, stop: int, step: int = 1, dtype: torch.dtype | None = None) -> NDArray:
        """Evenly spaced values in ``[start, stop)``, in the default dtype."""
        self._check_open()
        return self.attach(
            torch.arange(start, stop, step, dtype=dtype or self.dtype, device=self.device)
        )

    def create(self, data: float | Iterable | np.ndarray, dtype: torch.dtype | None = None) -> NDArray:
        """Create a tensor from a scalar, a sequence or a numpy array.

        Python floats become float64 scalars; numpy arrays keep their dtype
        unless *dtype* is given; other sequences use the default dtype.
        """
        self._check_open()
        if isinstance(data, np.ndarray):
            tensor = torch.from_numpy(np.ascontiguousarray(data)).to(self.device)
            if dtype is not None:
                tensor = tensor.to(dtype)
        elif isinstance(data, float):
            tensor = torch.tensor(data, dtype=dtype or torch.float64, device=self.device)
        else:
            tensor = torch.tensor(data, dtype=dtype or self.dtype, device=self.device)
        return self.attach(tensor)
