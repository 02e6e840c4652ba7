"""Tests for integration.assertions."""

from __future__ import annotations

import numpy as np
import pytest
import torch

from nnit.config import HarnessConfig, set_config
from nnit.integration.assertions import (
    assert_almost_equals,
    assert_equals,
    assert_false,
    assert_throws,
    assert_true,
)
from nnit.integration.types import FailedTestException


class TestBoolean:
    def test_true(self):
        assert_true(True)
        with pytest.raises(FailedTestException, match="wrong shape"):
            assert_true(False, "wrong shape")

    def test_false(self):
        assert_false(False)
        with pytest.raises(FailedTestException):
            assert_false(True)

    def test_failure_is_assertion_error(self):
        with pytest.raises(AssertionError):
            assert_true(False)


class TestEquals:
    def test_equal(self):
        assert_equals((10, 10), (10, 10))

    def test_default_message(self):
        with pytest.raises(FailedTestException, match=r"Expected \(10, 10\), got \(1, 10\)"):
            assert_equals((10, 10), (1, 10))

    def test_custom_message(self):
        with pytest.raises(FailedTestException, match="param count"):
            assert_equals(6, 4, "param count")


class TestAlmostEquals:
    def test_within_rtol(self):
        assert_almost_equals(torch.tensor(6430785.5), torch.tensor(6430790.0))

    def test_within_atol_near_zero(self):
        assert_almost_equals(np.array([-2.3e-08, 3.7e-08]), torch.tensor([1e-7, -5e-7]))

    def test_scalar_float64_against_float32(self):
        expected = torch.tensor(0.29814255237579346, dtype=torch.float64)
        assert_almost_equals(expected, torch.tensor(0.29814255, dtype=torch.float32))

    def test_beyond_tolerance(self):
        with pytest.raises(FailedTestException, match="1/2 mismatched, first at index 1"):
            assert_almost_equals([1.0, 2.0], torch.tensor([1.0, 2.5]))

    def test_shape_mismatch(self):
        with pytest.raises(FailedTestException, match="Shape mismatch"):
            assert_almost_equals([1.0, 2.0], torch.tensor([1.0, 2.0, 3.0]))

    def test_explicit_tolerances(self):
        assert_almost_equals(1.0, 1.4, rtol=0.0, atol=0.5)
        with pytest.raises(FailedTestException):
            assert_almost_equals(1.0, 1.4, rtol=0.0, atol=0.1)

    def test_configured_tolerances(self, tmp_path):
        set_config(HarnessConfig(data_dir=str(tmp_path), rtol=0.5, atol=0.0))
        assert_almost_equals(10.0, 14.0)

    def test_accepts_requires_grad(self):
        actual = torch.ones(2, requires_grad=True) * 1.0
        assert_almost_equals([1.0, 1.0], actual)


class TestThrows:
    def test_returns_exception(self):
        exc = assert_throws(lambda: int("x"), ValueError)
        assert isinstance(exc, ValueError)

    def test_nothing_raised(self):
        with pytest.raises(FailedTestException, match="Expected KeyError"):
            assert_throws(lambda: None, KeyError)

    def test_other_exception_propagates(self):
        def boom():
            raise TypeError("t")

        with pytest.raises(TypeError):
            assert_throws(boom, KeyError)
