from .coordinator import CoordinatorState, PipelineCoordinator, build_coordinator
from .errors import CoordinatorStateError, PipelineError, PipelineStartError

__all__ = [
    "CoordinatorState",
    "CoordinatorStateError",
    "PipelineCoordinator",
    "PipelineError",
    "PipelineStartError",
    "build_coordinator",
]
