"""Assertions raising :class:`FailedTestException`."""

from __future__ import annotations

from typing import Callable, Type

import numpy as np
import torch

from nnit.config import get_config
from nnit.integration.types import FailedTestException


def _to_numpy(value) -> np.ndarray:
    if isinstance(value, torch.Tensor):
        return value.detach().cpu().to(torch.float64).numpy()
    return np.asarray(value, dtype=np.float64)


def assert_true(statement: bool, message: str = "Assertion failed") -> None:
    if not statement:
        raise FailedTestException(message)


def assert_false(statement: bool, message: str = "Assertion failed") -> None:
    assert_true(not statement, message)


def assert_equals(expected, actual, message: str | None = None) -> None:
    if expected != actual:
        raise FailedTestException(message or f"Expected {expected!r}, got {actual!r}")


def assert_almost_equals(
    expected,
    actual,
    rtol: float | None = None,
    atol: float | None = None,
) -> None:
    """Check ``|actual - expected| <= atol + rtol * |expected|`` element-wise.

    Tolerances default to the configured ``rtol`` / ``atol``. Tensors, numpy
    arrays and Python numbers are accepted; both sides are compared as
    float64 and must have the same shape.
    """
    cfg = get_config()
    rtol = cfg.rtol if rtol is None else rtol
    atol = cfg.atol if atol is None else atol

    e = _to_numpy(expected)
    a = _to_numpy(actual)
    if e.shape != a.shape:
        raise FailedTestException(f"Shape mismatch: expected {e.shape}, got {a.shape}")

    close = np.isclose(a, e, rtol=rtol, atol=atol)
    if not close.all():
        idx = int(np.argmin(close.ravel()))
        raise FailedTestException(
            f"Values differ beyond rtol={rtol}, atol={atol}: "
            f"{int((~close).sum())}/{close.size} mismatched, first at index {idx} "
            f"(expected {e.ravel()[idx]!r}, got {a.ravel()[idx]!r})"
        )


def assert_throws(
    func: Callable[[], object],
    expected: Type[BaseException] = Exception,
    message: str | None = None,
) -> BaseException:
    """Run *func* and require it to raise *expected*. Returns the exception."""
    try:
        func()
    except expected as exc:
        return exc
    raise FailedTestException(message or f"Expected {expected.__name__} to be raised")
