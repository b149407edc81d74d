from .pipeline import ActionPinner, FileOutcome, FileState, PinnerConfig, RunOutcome
from .resolver import ActionResolver, Resolution, ResolutionCache
from .rewriter import rewrite_workflow, validate_rewrite

__all__ = [
    "ActionPinner",
    "ActionResolver",
    "FileOutcome",
    "FileState",
    "PinnerConfig",
    "Resolution",
    "ResolutionCache",
    "RunOutcome",
    "rewrite_workflow",
    "validate_rewrite",
]
