"""Shared fixtures for all tests."""

import os
import shutil

import pytest

from gha_pin.errors import NotFound, TransportOrAuthFailure
from gha_pin.github.client import Tag


FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures/.github/workflows")

CHECKOUT_V3_SHA = "a" * 40
CHECKOUT_V4_SHA = "1" * 40
SETUP_NODE_V381_SHA = "d" * 40
SETUP_NODE_V4_SHA = "c" * 40
CUSTOM_BRANCH_SHA = "e" * 40
UPLOAD_MAIN_SHA = "b" * 40


class FakeSource:
    """In-memory stand-in for GitHubClient that records every call."""

    def __init__(self, tags=None, branches=None, tag_refs=None, broken=()):
        self.tags = tags or {}
        self.branches = branches or {}
        self.tag_refs = tag_refs or {}
        self.broken = set(broken)
        self.calls = []

    def _check(self, owner, repo):
        if f"{owner}/{repo}" in self.broken:
            raise TransportOrAuthFailure("connection reset", status_code=None)

    def list_tags(self, owner, repo):
        self.calls.append(("list_tags", owner, repo))
        self._check(owner, repo)
        if f"{owner}/{repo}" not in self.tags:
            raise NotFound(f"{owner}/{repo}")
        return [Tag(name, sha) for name, sha in self.tags[f"{owner}/{repo}"]]

    def get_branch_head(self, owner, repo, branch):
        self.calls.append(("get_branch_head", owner, repo, branch))
        self._check(owner, repo)
        try:
            return self.branches[(f"{owner}/{repo}", branch)]
        except KeyError:
            raise NotFound(f"{owner}/{repo} branch {branch}") from None

    def get_tag_ref(self, owner, repo, tag):
        self.calls.append(("get_tag_ref", owner, repo, tag))
        self._check(owner, repo)
        try:
            return self.tag_refs[(f"{owner}/{repo}", tag)]
        except KeyError:
            raise NotFound(f"{owner}/{repo} tag {tag}") from None

    def calls_for(self, owner, repo):
        return [c for c in self.calls if c[1:3] == (owner, repo)]

    # GitHubClient is used as a context manager by the CLI
    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return None


@pytest.fixture
def fake_source():
    """A source that knows every action used by the fixture workflows."""
    return FakeSource(
        tags={
            "actions/checkout": [("v4.1.7", CHECKOUT_V4_SHA), ("v3", CHECKOUT_V3_SHA), ("v3.6.0", "2" * 40)],
            "actions/setup-node": [("v4.0.2", SETUP_NODE_V4_SHA), ("v3.8.1", SETUP_NODE_V381_SHA), ("v3.7.0", "3" * 40)],
            "company/custom-action": [("v1.0.0", "4" * 40)],
            "actions/upload-artifact": [("v4.3.1", "5" * 40)],
        },
        branches={
            ("company/custom-action", "v1.2.3"): CUSTOM_BRANCH_SHA,
            ("actions/upload-artifact", "main"): UPLOAD_MAIN_SHA,
        },
    )


@pytest.fixture
def fixtures_dir():
    """Path to the fixtures workflow directory."""
    return FIXTURES_DIR


@pytest.fixture
def workflows_dir(tmp_path):
    """A writable copy of the fixture workflows."""
    target = tmp_path / ".github" / "workflows"
    shutil.copytree(FIXTURES_DIR, target)
    return target
