"""
JSON reporter: outputs run summaries as structured JSON for programmatic use.
"""

import json
import logging

from gha_pin.parser.workflow_parser import WorkflowFile
from gha_pin.pinner.pipeline import RunOutcome

logger = logging.getLogger(__name__)


def report_run_json(outcome: RunOutcome) -> str:
    """
    Format a pinning run as a JSON string.

    Args:
        outcome: The RunOutcome returned by ActionPinner.run().

    Returns:
        A JSON string with the summary, per-file results and resolutions.
    """
    data = {
        "workflows_dir": outcome.workflows_dir,
        "dry_run": outcome.preview_only,
        "success": outcome.success,
        "message": outcome.message,
        "summary": {
            "files_scanned": outcome.files_scanned,
            "unique_actions": outcome.unique_actions,
            "resolutions_succeeded": len(outcome.resolved),
            "resolutions_failed": len(outcome.unresolved),
            "references_found": outcome.total_found,
            "references_updated": outcome.total_updated,
            "files_updated": outcome.files_updated,
            "errors": outcome.total_errors,
        },
        "files": [
            {
                "path": f.path,
                "state": f.state.value,
                "found": f.found,
                "updated": f.updated,
                "pinned": [{"uses": raw, "sha": sha} for raw, sha in f.pinned],
                "errors": f.errors,
            }
            for f in outcome.files
        ],
        "resolutions": [
            {
                "action": r.reference,
                "sha": r.sha,
                "source": r.source or None,
                "error": str(r.error) if r.error else None,
                "transient": r.error.transient if r.error else False,
            }
            for r in outcome.resolutions
        ],
    }
    output = json.dumps(data, indent=2)
    logger.info("JSON report: %d file(s), %d bytes", outcome.files_scanned, len(output))
    return output


def report_unpinned_json(workflows: list[WorkflowFile], errors: dict[str, str]) -> str:
    """Format unpinned references as a JSON string."""
    data = {
        "total": sum(len(wf.references) for wf in workflows),
        "unpinned": [
            {
                "file_path": wf.path,
                "uses": ref.raw,
                "action": ref.action_path,
                "ref": ref.ref,
                "job_id": ref.job_id,
                "step_name": ref.step_name,
                "line_number": ref.line_number,
            }
            for wf in workflows
            for ref in wf.references
        ],
        "errors": [{"file_path": p, "message": m} for p, m in errors.items()],
    }
    output = json.dumps(data, indent=2)
    logger.info("JSON report: %d unpinned reference(s), %d bytes", data["total"], len(output))
    return output
