"""Gradient recording scope and loss functions."""

from __future__ import annotations

import logging
import threading

import torch

from nnit.engine.types import EngineError, NDArray

logger = logging.getLogger(__name__)

_state = threading.local()


def is_training() -> bool:
    """True while a :class:`GradientCollector` is active on this thread."""
    return getattr(_state, "recording", False)


class GradientCollector:
    """Records operations inside a ``with`` block and backpropagates from a loss.

    Gradients are accumulated into ``Parameter.grad`` the way torch does it;
    load a fresh model when a clean gradient is needed.

    Usage::

        with GradientCollector() as collector:
            pred = block.forward([data])[0]
            collector.backward(loss_fn(label, pred))
    """

    def __init__(self) -> None:
        self._prev_grad_enabled: bool | None = None
        self._active = False

    def __enter__(self) -> "GradientCollector":
        if is_training():
            raise EngineError("A GradientCollector is already active on this thread")
        self._prev_grad_enabled = torch.is_grad_enabled()
        torch.set_grad_enabled(True)
        _state.recording = True
        self._active = True
        return self

    def __exit__(self, *exc) -> None:
        torch.set_grad_enabled(bool(self._prev_grad_enabled))
        _state.recording = False
        self._active = False

    def backward(self, target: NDArray) -> None:
        """Backpropagate from *target*; non-scalar targets use a ones head gradient."""
        if not self._active:
            raise EngineError("backward() called outside the GradientCollector scope")
        if target.dim() == 0:
            target.backward()
        else:
            target.backward(torch.ones_like(target))
        logger.debug("Backpropagated from target of shape %s", tuple(target.shape))


def softmax_cross_entropy_loss(
    label: NDArray,
    prediction: NDArray,
    weight: float = 1.0,
    batch_axis: int = 0,
    class_axis: int = -1,
    sparse_label: bool = True,
    from_logit: bool = False,
) -> NDArray:
    """Batch-averaged softmax cross-entropy.

    Args:
        label: Class indices (``sparse_label``) or a distribution shaped like
            *prediction*.
        prediction: Scores, or log-probabilities when ``from_logit`` is set.
        weight: Scalar applied to every sample's loss.
        batch_axis: Axis averaged last.
        class_axis: Axis holding the classes.
        sparse_label: Whether *label* holds indices.
        from_logit: Skip the log-softmax when *prediction* is already
            log-probabilities.

    Returns:
        A scalar tensor.
    """
    log_prob = prediction if from_logit else torch.log_softmax(prediction, dim=class_axis)
    if sparse_label:
        index = label.to(device=log_prob.device, dtype=torch.long).unsqueeze(class_axis)
        loss = -log_prob.gather(class_axis, index)
    else:
        loss = -(log_prob * label.to(log_prob.dtype)).sum(dim=class_axis, keepdim=True)
    loss = loss * weight

    batch_dim = batch_axis % loss.dim()
    other_dims = [d for d in range(loss.dim()) if d != batch_dim]
    if other_dims:
        loss = loss.mean(dim=other_dims)
    return loss.mean()
