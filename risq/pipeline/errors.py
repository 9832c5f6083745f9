from __future__ import annotations


class PipelineError(RuntimeError):
    pass


class PipelineStartError(PipelineError):
    """The coordinator could not bring up every subscription; nothing was left running."""


class CoordinatorStateError(PipelineError):
    """start() while running, or stop() while stopped."""
