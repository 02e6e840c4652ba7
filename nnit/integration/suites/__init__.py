"""Scenario suites runnable with ``nnit run -c <module>:<Class>``."""
