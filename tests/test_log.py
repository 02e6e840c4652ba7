"""Tests for nnit.log."""

from __future__ import annotations

import io
import logging

import pytest
from rich.console import Console

from nnit import log


@pytest.fixture()
def console():
    root = logging.getLogger()
    level = root.level
    out = Console(file=io.StringIO(), width=200, force_terminal=False, color_system=None)
    yield out
    log.teardown()
    root.setLevel(level)


def test_messages_reach_console(console):
    log.setup(console=console)
    logging.getLogger("nnit.test").info("PASS  SymbolBlockTest.test_inference")
    logging.getLogger("nnit.test").debug("hidden")
    text = console.file.getvalue()
    assert "PASS  SymbolBlockTest.test_inference" in text
    assert "hidden" not in text


def test_markup_is_escaped(console):
    log.setup(console=console)
    logging.getLogger("nnit.test").error("expected [bold]shape[/bold]")
    assert "expected [bold]shape[/bold]" in console.file.getvalue()


def test_setup_is_idempotent(console):
    root = logging.getLogger()
    before = len(root.handlers)
    log.setup(console=console)
    log.setup(console=console)
    assert len(root.handlers) == before + 1


def test_teardown_removes_handler(console):
    log.setup(console=console)
    log.teardown()
    logging.getLogger("nnit.test").warning("after teardown")
    assert "after teardown" not in console.file.getvalue()


def test_debug_level(console):
    log.setup(logging.DEBUG, console=console)
    logging.getLogger("nnit.test").debug("Extracted archive")
    assert "Extracted archive" in console.file.getvalue()


def test_setup_again_changes_level(console):
    handler = log.setup(console=console)
    assert log.setup(logging.DEBUG) is handler
    assert logging.getLogger().level == logging.DEBUG
    logging.getLogger("nnit.test").debug("now visible")
    assert "now visible" in console.file.getvalue()
