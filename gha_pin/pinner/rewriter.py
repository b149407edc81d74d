"""
Text rewriting of `uses:` lines and post-rewrite validation.

Each reference is rewritten only on the line the parser recorded for its
step's `uses` value, and only when that line is a `uses:` key (after
optional indentation and a list dash). The same owner/repo@ref inside a
comment, a step name or a run script is left alone.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from gha_pin.errors import MalformedWorkflow, RewriteValidationFailed
from gha_pin.parser.workflow_parser import MARKER_KEYS, ActionReference, parse_workflow_text

logger = logging.getLogger(__name__)

# Split after "\n" only, so "\r\n" stays attached to its line
_LINE_BREAK = re.compile(r"(?<=\n)")


@dataclass
class RewriteResult:
    """New workflow text plus how many lines were rewritten per reference."""
    text: str
    replacements: dict[str, int] = field(default_factory=dict)
    missed: list[ActionReference] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.replacements.values())


def _uses_pattern(raw: str) -> re.Pattern:
    return re.compile(
        r"^(?P<prefix>[ \t]*(?:-[ \t]+)?uses:[ \t]*)"
        r"(?P<quote>['\"]?)" + re.escape(raw) + r"(?P=quote)"
        r"(?P<suffix>[ \t]*(?:#[^\r\n]*)?)(?=\r?$)",
        re.MULTILINE,
    )


def rewrite_workflow(
    text: str,
    pins: list[tuple[ActionReference, str]],
    annotate: bool = False,
) -> RewriteResult:
    """
    Replace each reference's `uses:` value with its pinned SHA.

    Args:
        text: Original workflow text.
        pins: (reference, sha) pairs. A line is rewritten at most once.
        annotate: Append "# <ref>" to rewritten lines that have no comment.

    Returns:
        A RewriteResult with the new text, per-reference counts, and the
        references whose recorded line held no matching `uses:` key.
    """
    result = RewriteResult(text=text)
    lines = _LINE_BREAK.split(text)
    rewritten: set[int] = set()

    for ref, sha in pins:
        result.replacements.setdefault(ref.raw, 0)
        index = (ref.uses_line or 0) - 1
        if index in rewritten:
            continue

        def _replace(m: re.Match, ref: ActionReference = ref, sha: str = sha) -> str:
            suffix = m.group("suffix")
            if annotate and not suffix.strip():
                suffix = f" # {ref.ref}"
            return f"{m.group('prefix')}{m.group('quote')}{ref.action_path}@{sha}{m.group('quote')}{suffix}"

        count = 0
        if 0 <= index < len(lines):
            lines[index], count = _uses_pattern(ref.raw).subn(_replace, lines[index], count=1)
        if count:
            rewritten.add(index)
            result.replacements[ref.raw] += count
            logger.debug("Rewrote %s on line %d", ref.raw, ref.uses_line)
        else:
            result.missed.append(ref)
            logger.debug("No `uses: %s` on line %s", ref.raw, ref.uses_line)

    result.text = "".join(lines)
    return result


def _strip_lines(node: Any) -> Any:
    if isinstance(node, dict):
        return {k: _strip_lines(v) for k, v in node.items() if k not in MARKER_KEYS}
    if isinstance(node, list):
        return [_strip_lines(v) for v in node]
    return node


def _without_step_uses(document: dict[str, Any]) -> dict[str, Any]:
    """Copy of a document with line markers and step `uses` values removed."""
    doc = _strip_lines(document)
    jobs = doc.get("jobs")
    if isinstance(jobs, dict):
        for job in jobs.values():
            steps = job.get("steps") if isinstance(job, dict) else None
            if isinstance(steps, list):
                for step in steps:
                    if isinstance(step, dict):
                        step.pop("uses", None)
    return doc


def _job_shape(document: dict[str, Any]) -> dict[Any, int]:
    jobs = document.get("jobs")
    if not isinstance(jobs, dict):
        return {}
    return {
        job_id: len(job.get("steps") or []) if isinstance(job, dict) else 0
        for job_id, job in jobs.items()
        if job_id not in MARKER_KEYS
    }


def validate_rewrite(path: str, original: dict[str, Any], new_text: str) -> dict[str, Any]:
    """
    Re-parse rewritten text and check it is the same workflow apart from `uses`.

    Returns:
        The re-parsed document.

    Raises:
        RewriteValidationFailed: If the text no longer parses, or job ids,
            step counts or any non-`uses` field changed.
    """
    try:
        updated = parse_workflow_text(new_text, path)
    except MalformedWorkflow as e:
        raise RewriteValidationFailed(path, e.message) from e

    before, after = _job_shape(original), _job_shape(updated)
    if list(before) != list(after):
        raise RewriteValidationFailed(path, "job ids changed")
    if before != after:
        raise RewriteValidationFailed(path, "step counts changed")
    if _without_step_uses(original) != _without_step_uses(updated):
        raise RewriteValidationFailed(path, "fields other than 'uses' changed")
    return updated
