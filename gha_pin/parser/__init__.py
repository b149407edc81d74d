from .workflow_parser import (
    ActionReference,
    WorkflowFile,
    discover_workflow_files,
    extract_action_refs,
    is_pinned,
    load_workflow,
    parse_workflow_text,
)

__all__ = [
    "ActionReference",
    "WorkflowFile",
    "discover_workflow_files",
    "extract_action_refs",
    "is_pinned",
    "load_workflow",
    "parse_workflow_text",
]
