"""nnit: integration tests for neural-network model loading and training APIs.

Package layout::

    nnit.engine        framework adapter over torch (Model, NDManager, blocks,
                       initializers, loss, gradient collector, artifact codecs)
    nnit.integration   test harness (runner, assertions, artifact staging,
                       scenario suites)
    nnit.config        harness configuration
    nnit.log           logging setup for CLI runs
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
