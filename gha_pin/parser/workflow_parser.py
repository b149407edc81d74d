"""
Parser for GitHub Actions workflow files.

Discovers .yml/.yaml files in a workflows directory, parses them, and
extracts the `uses:` action references of every step that still point
at a mutable ref (tag, version or branch).

The parsed document is only ever read. Rewriting works on the raw text
so comments, quoting and key order survive.
"""

import fnmatch
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from gha_pin.errors import DirectoryNotFound, MalformedWorkflow

logger = logging.getLogger(__name__)

WORKFLOW_SUFFIXES = (".yml", ".yaml")

# A full SHA-1 commit hash: exactly 40 lowercase hex characters
PINNED_SHA_PATTERN = re.compile(r"[0-9a-f]{40}")

LINE_KEY = "__line__"
USES_LINE_KEY = "__uses_line__"
MARKER_KEYS = (LINE_KEY, USES_LINE_KEY)


class _LineLoader(yaml.SafeLoader):
    """PyYAML loader that stores line numbers on mapping nodes.

    Every mapping gets its start line under LINE_KEY; a mapping with a
    scalar `uses` value also gets that value's line under USES_LINE_KEY.
    """


def _construct_mapping(loader: _LineLoader, node: yaml.MappingNode) -> dict[Any, Any]:
    mapping: dict[Any, Any] = loader.construct_mapping(node, deep=True)
    mapping[LINE_KEY] = node.start_mark.line + 1  # YAML lines are 0-indexed
    for key_node, value_node in node.value:
        if key_node.value == "uses" and isinstance(value_node, yaml.ScalarNode):
            mapping[USES_LINE_KEY] = value_node.start_mark.line + 1
    return mapping


_LineLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class ActionReference:
    """A mutable reference to a GitHub Action used in a step."""
    action_path: str    # e.g. "actions/checkout" or "github/codeql-action/init"
    ref: str            # e.g. "v3", "v1.2.3", "main"
    raw: str            # exact "action_path@ref" text from the file
    job_id: str = ""
    step_index: int = 0
    step_name: Optional[str] = None
    line_number: Optional[int] = None   # line of the step mapping
    uses_line: Optional[int] = None     # line holding the `uses:` value

    @property
    def owner(self) -> str:
        return self.action_path.split("/")[0]

    @property
    def repo(self) -> str:
        return self.action_path.split("/")[1]

    @property
    def key(self) -> tuple[str, str]:
        """Deduplication key shared by every occurrence of the same action@ref."""
        return (self.action_path, self.ref)


@dataclass
class WorkflowFile:
    """A workflow file as read from disk."""
    path: str
    text: str
    document: dict[str, Any]
    references: list[ActionReference] = field(default_factory=list)


def is_pinned(ref: str) -> bool:
    """Return True if ref is already a full 40-character lowercase commit SHA."""
    return PINNED_SHA_PATTERN.fullmatch(ref) is not None


def _is_local_action(action_path: str) -> bool:
    return (
        action_path.startswith("./")
        or action_path.startswith("../")
        or "/./" in action_path
    )


def _parse_action_ref(
    uses_string: str,
    job_id: str = "",
    step_index: int = 0,
    step_name: Optional[str] = None,
    line_number: Optional[int] = None,
    uses_line: Optional[int] = None,
) -> Optional[ActionReference]:
    """Parse a `uses:` value like 'actions/checkout@v3'.

    Returns None for anything that must not be pinned: local actions,
    docker images, expressions, refs without '@', and refs that are
    already full SHAs.
    """
    if not uses_string or "@" not in uses_string:
        logger.debug("Skipping action without version ref: %s", uses_string)
        return None

    if uses_string.startswith("docker://") or "${{" in uses_string:
        logger.debug("Skipping docker/expression reference: %s", uses_string)
        return None

    action_path, ref = uses_string.rsplit("@", 1)
    if _is_local_action(action_path):
        logger.debug("Skipping local action: %s", uses_string)
        return None

    parts = action_path.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1] or not ref:
        logger.debug("Skipping non-repository reference: %s", uses_string)
        return None

    if is_pinned(ref):
        logger.debug("Already pinned: %s@%s", action_path, ref[:12])
        return None

    return ActionReference(
        action_path=action_path,
        ref=ref,
        raw=uses_string,
        job_id=job_id,
        step_index=step_index,
        step_name=step_name,
        line_number=line_number,
        uses_line=uses_line,
    )


def parse_workflow_text(text: str, path: str = "<string>") -> dict[str, Any]:
    """
    Parse workflow text into a mapping.

    Raises:
        MalformedWorkflow: If the text is not valid YAML or not a mapping.
    """
    try:
        raw = yaml.load(text, Loader=_LineLoader)  # noqa: S506  # _LineLoader is safe
    except yaml.YAMLError as e:
        raise MalformedWorkflow(path, str(e)) from e

    if not isinstance(raw, dict):
        raise MalformedWorkflow(path, "workflow is not a YAML mapping")
    return raw


def extract_action_refs(document: dict[str, Any]) -> list[ActionReference]:
    """Extract unpinned step action references in job-then-step order.

    A document without a `jobs` mapping simply has no references.
    """
    jobs = document.get("jobs")
    if not isinstance(jobs, dict):
        return []

    refs = []
    for job_id, job in jobs.items():
        if job_id in MARKER_KEYS or not isinstance(job, dict):
            continue
        steps = job.get("steps")
        if not isinstance(steps, list):
            continue
        for index, step in enumerate(steps):
            if not isinstance(step, dict):
                continue
            uses = step.get("uses")
            if not isinstance(uses, str):
                continue
            ref = _parse_action_ref(
                uses,
                job_id=str(job_id),
                step_index=index,
                step_name=step.get("name"),
                line_number=step.get(LINE_KEY),
                uses_line=step.get(USES_LINE_KEY),
            )
            if ref is not None:
                refs.append(ref)

    logger.debug("Extracted %d unpinned reference(s)", len(refs))
    return refs


def load_workflow(file_path: str) -> WorkflowFile:
    """
    Read and parse a single workflow file.

    Raises:
        MalformedWorkflow: If the file isn't UTF-8 or isn't a YAML mapping.
        OSError: If the file can't be read.
    """
    path = Path(file_path)
    logger.info("Parsing workflow: %s", file_path)

    try:
        # newline="" keeps CRLF files byte-for-byte intact on rewrite
        with open(path, "r", encoding="utf-8", newline="") as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise MalformedWorkflow(str(path), f"not valid UTF-8: {e}") from e

    document = parse_workflow_text(text, str(path))
    return WorkflowFile(
        path=str(path),
        text=text,
        document=document,
        references=extract_action_refs(document),
    )


def discover_workflow_files(dir_path: str, exclude: Iterable[str] = ()) -> list[str]:
    """
    List the .yml/.yaml files directly inside a workflows directory.

    Args:
        dir_path: Path to the directory (typically .github/workflows/).
        exclude: Glob patterns; matching files are skipped.

    Returns:
        Sorted file paths.

    Raises:
        DirectoryNotFound: If the directory doesn't exist.
        NotADirectoryError: If the path exists but isn't a directory.
    """
    path = Path(dir_path)
    if not path.exists():
        raise DirectoryNotFound(dir_path)
    if not path.is_dir():
        raise NotADirectoryError(f"Not a directory: {dir_path}")

    patterns = list(exclude)
    files = []
    for f in sorted(path.iterdir()):
        if f.suffix not in WORKFLOW_SUFFIXES or not f.is_file():
            continue
        if any(fnmatch.fnmatch(str(f), pat) or fnmatch.fnmatch(f.name, pat) for pat in patterns):
            logger.info("Excluded %s via config", f.name)
            continue
        files.append(str(f))

    logger.debug("Found %d workflow file(s) in %s", len(files), dir_path)
    return files
