"""
Console logging for command-line runs.

Library modules only call ``logging.getLogger(__name__)``. Entry points call
:func:`setup`, which puts one :class:`RichConsoleHandler` on the root logger
so scenario results show up colored by level on stderr.

Example:
    >>> import logging
    >>> logging.getLogger("nnit").info("PASS  SymbolBlockTest.test_inference")  # blue
    >>> logging.getLogger("nnit").error("FAIL  SymbolBlockTest.train_with_new_param")  # red
"""
import logging
from typing import Optional

from rich.console import Console
from rich.markup import escape

# Checked from the highest level down; the first match wins
_LEVEL_STYLES = (
    (logging.ERROR, "bold red"),
    (logging.WARNING, "yellow"),
    (logging.INFO, "blue"),
)
_DEBUG_STYLE = "dim"


def _style_for(levelno: int) -> str:
    for threshold, style in _LEVEL_STYLES:
        if levelno >= threshold:
            return style
    return _DEBUG_STYLE


class RichConsoleHandler(logging.Handler):
    """Prints formatted records to a rich console.

    Messages are escaped, so brackets in tensor shapes or file names are never
    read as rich markup.
    """

    def __init__(self, console: Optional[Console] = None):
        super().__init__()
        self.console = console or Console(stderr=True)

    def emit(self, record: logging.LogRecord):
        try:
            style = _style_for(record.levelno)
            self.console.print(f"[{style}]{escape(self.format(record))}[/{style}]", highlight=False)
        except Exception:
            self.handleError(record)


_handler: Optional[RichConsoleHandler] = None


def setup(level: int = logging.INFO, console: Optional[Console] = None) -> RichConsoleHandler:
    """Route root-logger records to the console at *level*.

    The handler is installed once per process; later calls only change the
    level, so ``nnit -v`` can raise verbosity after a suite already set up
    logging. *console* is used only when the handler is first created.
    """
    global _handler

    root = logging.getLogger()
    if _handler is None:
        _handler = RichConsoleHandler(console)
        _handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(_handler)
    root.setLevel(level)
    return _handler


def teardown() -> None:
    """Detach and close the console handler, if installed."""
    global _handler

    handler, _handler = _handler, None
    if handler is not None:
        logging.getLogger().removeHandler(handler)
        handler.close()
