"""The symbol block scenarios on the published MNIST MLP checkpoint.

Downloads the archive into the configured data directory; run with
``pytest --run-network``.
"""

from __future__ import annotations

import pytest

from nnit.integration.suites.symbol_block import SymbolBlockTest

pytestmark = pytest.mark.network


@pytest.fixture(scope="module")
def suite():
    return SymbolBlockTest()


def test_inference(suite):
    suite.test_inference()


def test_train_with_new_param(suite):
    suite.train_with_new_param()


def test_train_with_exist_param(suite):
    suite.train_with_exist_param()


def test_train_with_custom_layer(suite):
    suite.train_with_custom_layer()
