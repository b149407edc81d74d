"""
The pinning pipeline: discover → extract → resolve → rewrite & validate.

Resolution is batched across every file of the run so an action used in
several workflows is looked up once and pinned to the same SHA
everywhere. Per-file and per-reference failures are recorded in the
RunOutcome; only filesystem failures (unreadable directory, failed
write) propagate.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from gha_pin.errors import (
    DirectoryNotFound,
    MalformedWorkflow,
    NoWorkflowFiles,
    RewriteValidationFailed,
)
from gha_pin.github.client import DEFAULT_API_URL, DEFAULT_TIMEOUT
from gha_pin.parser.workflow_parser import WorkflowFile, discover_workflow_files, load_workflow
from gha_pin.pinner.resolver import (
    ActionMetadataSource,
    ActionResolver,
    RefKey,
    Resolution,
    ResolutionCache,
)
from gha_pin.pinner.rewriter import rewrite_workflow, validate_rewrite

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOWS_DIR = ".github/workflows"
PACKAGE_LOGGER = "gha_pin"


@dataclass
class PinnerConfig:
    """Everything a pinning run needs to know, already merged from CLI + config file."""
    preview_only: bool = False
    verbose_logging: bool = False
    credential: Optional[str] = None
    workflows_dir: str = DEFAULT_WORKFLOWS_DIR
    exclude: list[str] = field(default_factory=list)
    fail_on_unresolved: bool = True
    timeout: float = DEFAULT_TIMEOUT
    api_url: str = DEFAULT_API_URL
    annotate: bool = False


class FileState(Enum):
    NO_ACTIONS = "no-actions"
    UNCHANGED = "unchanged"
    WRITTEN = "written"
    PREVIEW_ONLY = "preview-only"
    VALIDATION_FAILED = "validation-failed"
    MALFORMED = "malformed"


@dataclass
class FileOutcome:
    """What happened to a single workflow file."""
    path: str
    state: FileState
    found: int = 0
    updated: int = 0
    errors: list[str] = field(default_factory=list)
    pinned: list[tuple[str, str]] = field(default_factory=list)  # (raw, sha)

    @property
    def failed(self) -> bool:
        return self.state in (FileState.MALFORMED, FileState.VALIDATION_FAILED)


@dataclass
class RunOutcome:
    """Aggregate result of one pinning run."""
    workflows_dir: str
    preview_only: bool = False
    fail_on_unresolved: bool = True
    files: list[FileOutcome] = field(default_factory=list)
    resolutions: list[Resolution] = field(default_factory=list)
    message: Optional[str] = None   # set when there was nothing to do
    duration_ms: float = 0.0

    @property
    def files_scanned(self) -> int:
        return len(self.files)

    @property
    def unique_actions(self) -> int:
        return len(self.resolutions)

    @property
    def resolved(self) -> list[Resolution]:
        return [r for r in self.resolutions if r.ok]

    @property
    def unresolved(self) -> list[Resolution]:
        return [r for r in self.resolutions if not r.ok]

    @property
    def total_found(self) -> int:
        return sum(f.found for f in self.files)

    @property
    def total_updated(self) -> int:
        return sum(f.updated for f in self.files)

    @property
    def files_updated(self) -> int:
        return sum(1 for f in self.files if f.state in (FileState.WRITTEN, FileState.PREVIEW_ONLY))

    @property
    def total_errors(self) -> int:
        return sum(len(f.errors) for f in self.files)

    @property
    def success(self) -> bool:
        if any(f.failed for f in self.files):
            return False
        if any(f.errors for f in self.files) and self.fail_on_unresolved:
            return False
        return True


class ActionPinner:
    """Runs the pipeline for one workflows directory.

    Each call to run() gets a fresh ResolutionCache, so a pinner can be
    reused without carrying resolutions over between runs.
    """

    def __init__(self, config: PinnerConfig, source: ActionMetadataSource):
        self.config = config
        self.source = source
        if config.verbose_logging:
            logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG)

    def run(self) -> RunOutcome:
        t0 = time.monotonic()
        outcome = RunOutcome(
            workflows_dir=self.config.workflows_dir,
            preview_only=self.config.preview_only,
            fail_on_unresolved=self.config.fail_on_unresolved,
        )

        try:
            paths = discover_workflow_files(self.config.workflows_dir, self.config.exclude)
            if not paths:
                raise NoWorkflowFiles(self.config.workflows_dir)
        except (DirectoryNotFound, NoWorkflowFiles) as e:
            logger.info("Nothing to pin: %s", e)
            outcome.message = str(e)
            return outcome

        workflows: list[WorkflowFile] = []
        malformed: dict[str, FileOutcome] = {}
        for path in paths:
            try:
                workflows.append(load_workflow(path))
            except MalformedWorkflow as e:
                logger.warning("Skipping malformed workflow %s: %s", path, e.message)
                malformed[path] = FileOutcome(path=path, state=FileState.MALFORMED, errors=[str(e)])

        resolver = ActionResolver(self.source, ResolutionCache())
        resolutions = resolver.resolve_all(r for wf in workflows for r in wf.references)
        outcome.resolutions = list(resolutions.values())

        by_path = {wf.path: wf for wf in workflows}
        for path in paths:
            if path in malformed:
                outcome.files.append(malformed[path])
            else:
                outcome.files.append(self._apply(by_path[path], resolutions))

        outcome.duration_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "Run complete: %d file(s), %d unique action(s), %d updated in %.0fms",
            outcome.files_scanned, outcome.unique_actions, outcome.total_updated,
            outcome.duration_ms,
        )
        return outcome

    def _apply(self, workflow: WorkflowFile, resolutions: dict[RefKey, Resolution]) -> FileOutcome:
        result = FileOutcome(path=workflow.path, state=FileState.NO_ACTIONS, found=len(workflow.references))
        if not workflow.references:
            return result

        pins = []
        for ref in workflow.references:
            resolution = resolutions[ref.key]
            if resolution.ok:
                pins.append((ref, resolution.sha))
            elif str(resolution.error) not in result.errors:
                result.errors.append(str(resolution.error))

        rewrite = rewrite_workflow(workflow.text, pins, annotate=self.config.annotate)
        for ref in rewrite.missed:
            result.errors.append(f"Could not locate 'uses: {ref.raw}' on line {ref.uses_line}")

        if rewrite.total == 0:
            result.state = FileState.UNCHANGED
            return result

        try:
            validate_rewrite(workflow.path, workflow.document, rewrite.text)
        except RewriteValidationFailed as e:
            logger.error("%s", e)
            result.state = FileState.VALIDATION_FAILED
            result.errors.append(str(e))
            return result

        result.updated = rewrite.total
        result.pinned = list(dict.fromkeys(
            (ref.raw, sha) for ref, sha in pins if rewrite.replacements.get(ref.raw)
        ))

        if self.config.preview_only:
            result.state = FileState.PREVIEW_ONLY
            logger.info("Would update %s (%d reference(s))", workflow.path, result.updated)
        else:
            with open(workflow.path, "w", encoding="utf-8", newline="") as f:
                f.write(rewrite.text)
            result.state = FileState.WRITTEN
            logger.info("Updated %s (%d reference(s))", workflow.path, result.updated)
        return result
