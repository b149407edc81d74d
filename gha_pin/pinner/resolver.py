"""
Resolution of mutable action refs to commit SHAs.

Lookup order for a given owner/repo@ref:
  1. version-shaped refs (v3, 1.2, v1.2.3): the repository's tag list,
     exact name first, then for a bare major the first "v3." / "3." tag
     in the provider's own ordering
  2. the head of a branch with that name
  3. a tag ref with that name (annotated tags dereferenced)

Each unique (action_path, ref) is attempted once per run; the outcome,
success or failure, lives in a ResolutionCache owned by the run.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Union

from gha_pin.errors import NotFound, TransportOrAuthFailure, UnresolvedReference
from gha_pin.github.client import Tag
from gha_pin.parser.workflow_parser import ActionReference, is_pinned

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"v?\d+(?:\.\d+){0,2}")
MAJOR_VERSION_PATTERN = re.compile(r"v?(\d+)")

RefKey = tuple[str, str]


class ActionMetadataSource(Protocol):
    """What the resolver needs from the remote side (GitHubClient in practice)."""

    def list_tags(self, owner: str, repo: str) -> list[Tag]: ...

    def get_branch_head(self, owner: str, repo: str, branch: str) -> str: ...

    def get_tag_ref(self, owner: str, repo: str, tag: str) -> str: ...


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one (action_path, ref) key."""
    key: RefKey
    sha: Optional[str] = None
    error: Optional[UnresolvedReference] = None
    source: str = ""    # "tag", "major-tag", "branch" or "tag-ref"

    @property
    def ok(self) -> bool:
        return self.sha is not None

    @property
    def reference(self) -> str:
        return f"{self.key[0]}@{self.key[1]}"


class ResolutionCache:
    """Per-run cache of resolutions. Create one per run and drop it afterwards."""

    def __init__(self) -> None:
        self._entries: dict[RefKey, Resolution] = {}

    def __contains__(self, key: RefKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: RefKey) -> Optional[Resolution]:
        return self._entries.get(key)

    def add(self, resolution: Resolution) -> None:
        if resolution.key in self._entries:
            raise ValueError(f"{resolution.reference} is already resolved for this run")
        self._entries[resolution.key] = resolution

    def succeeded(self) -> list[Resolution]:
        return [r for r in self._entries.values() if r.ok]

    def failed(self) -> list[Resolution]:
        return [r for r in self._entries.values() if not r.ok]


def _find_tag(tags: list[Tag], ref: str) -> Optional[tuple[Tag, str]]:
    for tag in tags:
        if tag.name == ref:
            return tag, "tag"

    major = MAJOR_VERSION_PATTERN.fullmatch(ref)
    if major:
        # Deliberately the first listed match, not the highest semver
        prefixes = (f"v{major.group(1)}.", f"{major.group(1)}.")
        for tag in tags:
            if tag.name.startswith(prefixes):
                return tag, "major-tag"
    return None


class ActionResolver:
    """Resolves action references against a metadata source, once per key."""

    def __init__(self, source: ActionMetadataSource, cache: Optional[ResolutionCache] = None):
        self.source = source
        self.cache = cache if cache is not None else ResolutionCache()
        # Tag listings are shared by every ref of the same repository
        self._tags: dict[tuple[str, str], Union[list[Tag], NotFound]] = {}

    def _list_tags(self, owner: str, repo: str) -> list[Tag]:
        repo_key = (owner, repo)
        if repo_key not in self._tags:
            try:
                self._tags[repo_key] = self.source.list_tags(owner, repo)
            except NotFound as e:
                self._tags[repo_key] = e
        cached = self._tags[repo_key]
        if isinstance(cached, NotFound):
            raise cached
        return cached

    def _lookup(self, action_path: str, ref: str) -> tuple[str, str]:
        parts = action_path.split("/")
        owner, repo = parts[0], parts[1]
        not_found: Optional[NotFound] = None

        if VERSION_PATTERN.fullmatch(ref):
            try:
                match = _find_tag(self._list_tags(owner, repo), ref)
            except NotFound as e:
                not_found, match = e, None
            if match:
                tag, how = match
                logger.debug("%s@%s matched tag %s", action_path, ref, tag.name)
                return tag.commit_sha, how

        try:
            return self.source.get_branch_head(owner, repo, ref), "branch"
        except NotFound as e:
            not_found = e

        try:
            return self.source.get_tag_ref(owner, repo, ref), "tag-ref"
        except NotFound as e:
            not_found = e

        raise not_found

    def resolve_key(self, key: RefKey) -> Resolution:
        """Resolve one key, consulting the cache first."""
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        action_path, ref = key
        reference = f"{action_path}@{ref}"
        try:
            sha, how = self._lookup(action_path, ref)
            sha = str(sha).lower()
            if not is_pinned(sha):
                raise TransportOrAuthFailure(f"unexpected SHA {sha!r} for {reference} ({how})")
            resolution = Resolution(key=key, sha=sha, source=how)
            logger.info("Resolved %s -> %s (%s)", reference, sha[:12], how)
        except (NotFound, TransportOrAuthFailure) as e:
            resolution = Resolution(key=key, error=UnresolvedReference(reference, e))
            logger.warning("Could not resolve %s: %s", reference, e)

        self.cache.add(resolution)
        return resolution

    def resolve(self, reference: ActionReference) -> Resolution:
        return self.resolve_key(reference.key)

    def resolve_all(self, references: Iterable[ActionReference]) -> dict[RefKey, Resolution]:
        """Resolve the unique keys of many references, in first-seen order."""
        keys = list(dict.fromkeys(r.key for r in references))
        logger.info("Resolving %d unique action reference(s)", len(keys))
        return {key: self.resolve_key(key) for key in keys}
