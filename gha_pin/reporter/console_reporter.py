"""
Console reporter: prints run summaries and unpinned-action listings.
"""

from gha_pin.parser.workflow_parser import WorkflowFile
from gha_pin.pinner.pipeline import FileOutcome, FileState, RunOutcome


# ANSI color codes for terminal output
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[91m"
CYAN = "\033[36m"
BOLD = "\033[1m"
RESET = "\033[0m"

_STATE_BADGES = {
    FileState.NO_ACTIONS: (CYAN, "NOTHING"),
    FileState.UNCHANGED: (YELLOW, "UNCHANGED"),
    FileState.WRITTEN: (GREEN, "UPDATED"),
    FileState.PREVIEW_ONLY: (GREEN, "PREVIEW"),
    FileState.VALIDATION_FAILED: (RED, "INVALID"),
    FileState.MALFORMED: (RED, "MALFORMED"),
}


def _state_badge(state: FileState) -> str:
    color, label = _STATE_BADGES[state]
    return f"{color}{BOLD}[{label:9s}]{RESET}"


def _header(title: str, path: str) -> list[str]:
    return [
        "",
        f"{BOLD}{'=' * 60}{RESET}",
        f"{BOLD}  {title}{RESET}",
        f"  Directory: {path}",
        f"{BOLD}{'=' * 60}{RESET}",
        "",
    ]


def _file_lines(f: FileOutcome, preview: bool) -> list[str]:
    lines = [f"  {_state_badge(f.state)} {f.path}"]
    if f.found:
        verb = "would be updated" if preview else "updated"
        lines.append(f"    {f.found} unpinned reference(s), {f.updated} {verb}")
    for raw, sha in f.pinned:
        action_path = raw.rsplit("@", 1)[0]
        lines.append(f"    {GREEN}✓{RESET} {raw} → {action_path}@{sha[:7]}…")
    for err in f.errors:
        lines.append(f"    {RED}✗{RESET} {err}")
    return lines


def report_run(outcome: RunOutcome) -> str:
    """
    Format a pinning run as a console report.

    Args:
        outcome: The RunOutcome returned by ActionPinner.run().

    Returns:
        The formatted report string (also prints it).
    """
    lines = _header("GitHub Actions Pinner", outcome.workflows_dir)

    if outcome.preview_only:
        lines.append(f"  {YELLOW}Dry run: no files will be modified{RESET}")
        lines.append("")

    if outcome.message:
        lines.append(f"  Nothing to pin. {outcome.message}")
        lines.append("")
        report = "\n".join(lines)
        print(report)
        return report

    for f in outcome.files:
        lines.extend(_file_lines(f, outcome.preview_only))
    lines.append("")
    lines.append(f"  {'-' * 56}")

    verb = "would be updated" if outcome.preview_only else "updated"
    lines.append(f"  Files scanned:   {outcome.files_scanned}")
    lines.append(f"  Unique actions:  {outcome.unique_actions}")
    lines.append(
        f"  Resolutions:     {len(outcome.resolved)} succeeded, "
        f"{len(outcome.unresolved)} failed"
    )
    lines.append(f"  References:      {outcome.total_updated} {verb}")
    lines.append(f"  Files:           {outcome.files_updated} {verb}")
    if outcome.total_errors:
        lines.append(f"  Errors:          {RED}{outcome.total_errors}{RESET}")

    lines.append("")
    if outcome.success:
        lines.append(f"  {GREEN}✅ Pinning complete{RESET}")
    else:
        lines.append(f"  {RED}❌ Pinning finished with errors{RESET}")
    if outcome.files_updated and not outcome.preview_only:
        lines.append("")
        lines.append("  Don't forget to commit the updated workflows:")
        lines.append(f"    git add {outcome.workflows_dir}")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    report = "\n".join(lines)
    print(report)
    return report


def report_unpinned(workflows: list[WorkflowFile], errors: dict[str, str], path: str = "") -> str:
    """
    Format the unpinned references of already-parsed workflows.

    Args:
        workflows: Parsed workflow files.
        errors: Malformed file path → error message.
        path: Label for the report header.
    """
    lines = _header("Unpinned GitHub Actions", path)

    total = sum(len(wf.references) for wf in workflows)
    if not total and not errors:
        lines.append("  ✅ All actions are pinned to commit SHAs!")
        lines.append("")
        report = "\n".join(lines)
        print(report)
        return report

    lines.append(f"  Found {BOLD}{total}{RESET} unpinned reference(s):")
    for wf in workflows:
        if not wf.references:
            continue
        lines.append("")
        lines.append(f"  {wf.path}")
        for ref in wf.references:
            where = f"line {ref.line_number}" if ref.line_number else f"step {ref.step_index + 1}"
            step = ref.step_name or ref.raw
            lines.append(f"    {YELLOW}•{RESET} {ref.raw}  ({ref.job_id} / {step}, {where})")

    for file_path, message in errors.items():
        lines.append("")
        lines.append(f"  {RED}✗{RESET} {file_path}: {message}")

    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    report = "\n".join(lines)
    print(report)
    return report
