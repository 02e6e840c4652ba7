"""Integration test runner for ``@run_as_test`` methods.

Usage::

    class MyTest:
        @run_as_test
        def test_inference(self):
            assert_true(...)

    if __name__ == "__main__":
        sys.exit(IntegrationTest().main(["-c", "mypkg.mymod:MyTest", *sys.argv[1:]]))

Command-line arguments understood by :meth:`IntegrationTest.run_tests`::

    -c/--class   test class, ``pkg.module:Class`` or ``pkg.module.Class`` (repeatable)
    -m/--method  only run these methods (repeatable)
    -r/--repeat  run every selected method N times
    -l/--list    list the selected methods without running them
"""

from __future__ import annotations

import argparse
import importlib
import inspect
import logging
import time
from typing import Callable, Iterable, Sequence, TypeVar

from nnit.integration.types import (
    ArtifactError,
    FailedTestException,
    Outcome,
    RunSummary,
    ScenarioResult,
)

logger = logging.getLogger(__name__)

RUN_AS_TEST_ATTR = "__run_as_test__"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2

F = TypeVar("F", bound=Callable)


def run_as_test(func: F) -> F:
    """Mark a method as an integration scenario."""
    setattr(func, RUN_AS_TEST_ATTR, True)
    return func


def resolve_class(name: str) -> type:
    """Import ``pkg.module:Class`` or ``pkg.module.Class``."""
    if ":" in name:
        module_name, _, attr = name.partition(":")
    else:
        module_name, _, attr = name.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid test class name: '{name}'")
    module = importlib.import_module(module_name)
    try:
        cls = getattr(module, attr)
    except AttributeError as exc:
        raise ValueError(f"Test class not found: '{name}'") from exc
    if not inspect.isclass(cls):
        raise ValueError(f"'{name}' is not a class")
    return cls


def collect_tests(cls: type) -> list[str]:
    """Names of the ``@run_as_test`` methods of *cls*, in source order."""
    found: dict[str, Callable] = {}
    for klass in reversed(cls.__mro__):
        for name, member in vars(klass).items():
            if callable(member) and getattr(member, RUN_AS_TEST_ATTR, False):
                found[name] = member
    return sorted(found, key=lambda n: _source_line(found[n]))


def _source_line(func: Callable) -> int:
    code = getattr(inspect.unwrap(func), "__code__", None)
    return code.co_firstlineno if code else 0


def class_name(cls: type) -> str:
    return f"{cls.__module__}:{cls.__qualname__}"


def exit_code(summary: RunSummary) -> int:
    if summary.aborted:
        return EXIT_ABORTED
    return EXIT_OK if summary.ok else EXIT_FAILED


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nnit run", description="Run integration scenarios")
    parser.add_argument("-c", "--class", dest="classes", action="append", required=True,
                        help="Test class, pkg.module:Class")
    parser.add_argument("-m", "--method", dest="methods", action="append", default=None,
                        help="Only run this method (repeatable)")
    parser.add_argument("-r", "--repeat", type=int, default=1, help="Run each method N times")
    parser.add_argument("-l", "--list", action="store_true", help="List methods and exit")
    return parser


class IntegrationTest:
    """Discovers and runs ``@run_as_test`` methods, reporting one result each."""

    def __init__(self) -> None:
        self.summary = RunSummary()

    # -- entry points --------------------------------------------------------

    def main(self, argv: Sequence[str] | None = None) -> int:
        """Parse *argv*, run, and return a process exit code.

        An unknown class or method, or an invalid repeat count, aborts the
        run before any scenario starts.
        """
        try:
            self.run_tests(argv)
        except (ImportError, ValueError) as exc:
            logger.error("%s", exc)
            self.summary.aborted = True
        return exit_code(self.summary)

    def run_tests(self, argv: Sequence[str] | None = None) -> bool:
        """Parse *argv* and run the selected scenarios. Returns ``True`` if all passed."""
        args = _build_parser().parse_args(argv)
        if args.repeat < 1:
            raise ValueError(f"--repeat must be >= 1, got {args.repeat}")
        classes = [resolve_class(name) for name in args.classes]

        if args.list:
            for cls in classes:
                for method in self._select(cls, args.methods):
                    print(f"{class_name(cls)}.{method}")
            return True

        self.run(classes, methods=args.methods, repeat=args.repeat)
        return self.summary.ok

    # -- execution -----------------------------------------------------------

    @staticmethod
    def _select(cls: type, methods: Iterable[str] | None) -> list[str]:
        names = collect_tests(cls)
        if not methods:
            return names
        unknown = sorted(set(methods) - set(names))
        if unknown:
            raise ValueError(f"No @run_as_test method(s) {', '.join(unknown)} in {class_name(cls)}")
        return [n for n in names if n in set(methods)]

    def run(
        self,
        classes: Sequence[type],
        methods: Iterable[str] | None = None,
        repeat: int = 1,
    ) -> RunSummary:
        methods = list(methods) if methods else None
        for cls in classes:
            names = self._select(cls, methods)
            instance = cls()
            for _ in range(repeat):
                for name in names:
                    result = self._run_one(instance, cls, name)
                    self.summary.results.append(result)
                    if self.summary.aborted:
                        logger.error("Aborting remaining scenarios")
                        self._log_summary()
                        return self.summary
        self._log_summary()
        return self.summary

    def _run_one(self, instance: object, cls: type, name: str) -> ScenarioResult:
        label = f"{cls.__qualname__}.{name}"
        start = time.perf_counter()
        status, message = Outcome.PASS, ""
        try:
            getattr(instance, name)()
        except FailedTestException as exc:
            status, message = Outcome.FAIL, str(exc)
            logger.error("FAIL  %s: %s", label, message)
        except ArtifactError as exc:
            status, message = Outcome.ERROR, str(exc)
            self.summary.aborted = True
            logger.error("ERROR %s: %s", label, message)
        except Exception as exc:  # pylint: disable=broad-except
            status, message = Outcome.ERROR, f"{type(exc).__name__}: {exc}"
            logger.error("ERROR %s: %s", label, message, exc_info=exc)
        duration = time.perf_counter() - start
        if status == Outcome.PASS:
            logger.info("PASS  %s (%.2fs)", label, duration)
        return ScenarioResult(
            test_class=class_name(cls), method=name, status=status,
            duration=duration, message=message,
        )

    def _log_summary(self) -> None:
        s = self.summary
        log = logger.info if s.ok else logger.error
        log("%d passed, %d failed%s", s.passed, s.failed, " (aborted)" if s.aborted else "")
