"""Tests for the workflow parser."""

import os
import pytest

from gha_pin.errors import DirectoryNotFound, MalformedWorkflow
from gha_pin.parser import (
    discover_workflow_files,
    extract_action_refs,
    is_pinned,
    load_workflow,
    parse_workflow_text,
)
from gha_pin.parser.workflow_parser import _parse_action_ref


# ---------------------------------------------------------------------------
# is_pinned
# ---------------------------------------------------------------------------

class TestIsPinned:
    def test_full_lowercase_sha(self):
        assert is_pinned("af513c7a016048ae468971c52ed77d9562c7c819") is True

    def test_uppercase_sha_is_not_pinned(self):
        assert is_pinned("AF513C7A016048AE468971C52ED77D9562C7C819") is False

    def test_39_chars_is_not_pinned(self):
        assert is_pinned("a" * 39) is False

    def test_41_chars_is_not_pinned(self):
        assert is_pinned("a" * 41) is False

    @pytest.mark.parametrize("ref", ["v3", "v1.2.3", "main", "latest", "1.0"])
    def test_mutable_refs(self, ref):
        assert is_pinned(ref) is False


# ---------------------------------------------------------------------------
# _parse_action_ref
# ---------------------------------------------------------------------------

class TestParseActionRef:
    def test_standard_tag_ref(self):
        ref = _parse_action_ref("actions/checkout@v3")
        assert ref.action_path == "actions/checkout"
        assert ref.owner == "actions"
        assert ref.repo == "checkout"
        assert ref.ref == "v3"
        assert ref.raw == "actions/checkout@v3"

    def test_pinned_sha_returns_none(self):
        sha = "af513c7a016048ae468971c52ed77d9562c7c819"
        assert _parse_action_ref(f"actions/checkout@{sha}") is None

    def test_branch_ref(self):
        ref = _parse_action_ref("some-org/deploy-action@main")
        assert ref.owner == "some-org"
        assert ref.repo == "deploy-action"
        assert ref.ref == "main"

    def test_subpath_action(self):
        ref = _parse_action_ref("github/codeql-action/init@v3")
        assert ref.action_path == "github/codeql-action/init"
        assert ref.owner == "github"
        assert ref.repo == "codeql-action"
        assert ref.key == ("github/codeql-action/init", "v3")

    def test_splits_on_last_at(self):
        ref = _parse_action_ref("org/repo@feature@2")
        assert ref.action_path == "org/repo@feature"
        assert ref.ref == "2"

    def test_docker_action_returns_none(self):
        assert _parse_action_ref("docker://alpine@sha256:abcdef") is None

    @pytest.mark.parametrize("uses", [
        "./.github/actions/my-action@v1",
        "../shared/action@v1",
        "org/repo/./nested@v1",
    ])
    def test_local_action_returns_none(self, uses):
        assert _parse_action_ref(uses) is None

    def test_no_at_sign_returns_none(self):
        assert _parse_action_ref("actions/checkout") is None

    def test_no_slash_returns_none(self):
        assert _parse_action_ref("checkout@v3") is None

    def test_expression_returns_none(self):
        assert _parse_action_ref("actions/checkout@${{ inputs.ref }}") is None

    def test_empty_string_returns_none(self):
        assert _parse_action_ref("") is None


# ---------------------------------------------------------------------------
# parse_workflow_text / extract_action_refs
# ---------------------------------------------------------------------------

class TestParseWorkflowText:
    def test_invalid_yaml_raises(self):
        with pytest.raises(MalformedWorkflow) as exc:
            parse_workflow_text("jobs: [unclosed", "bad.yml")
        assert exc.value.path == "bad.yml"

    def test_non_mapping_raises(self):
        with pytest.raises(MalformedWorkflow):
            parse_workflow_text("just a string")

    def test_missing_jobs_means_no_refs(self):
        doc = parse_workflow_text("name: Empty\non: push\n")
        assert extract_action_refs(doc) == []

    def test_non_string_uses_is_ignored(self):
        doc = parse_workflow_text(
            "jobs:\n  a:\n    steps:\n      - uses: [not, a, string]\n"
        )
        assert extract_action_refs(doc) == []

    def test_order_is_job_then_step(self):
        doc = parse_workflow_text(
            "jobs:\n"
            "  first:\n"
            "    steps:\n"
            "      - uses: a/one@v1\n"
            "      - uses: a/two@v1\n"
            "  second:\n"
            "    steps:\n"
            "      - uses: a/three@v1\n"
        )
        refs = extract_action_refs(doc)
        assert [r.raw for r in refs] == ["a/one@v1", "a/two@v1", "a/three@v1"]
        assert [r.job_id for r in refs] == ["first", "first", "second"]
        assert [r.step_index for r in refs] == [0, 1, 0]


class TestLoadWorkflow:
    def test_fixture_references(self, fixtures_dir):
        wf = load_workflow(os.path.join(fixtures_dir, "ci.yml"))
        raws = [r.raw for r in wf.references]
        assert raws == [
            "actions/checkout@v3",
            "actions/setup-node@v3",
            "company/custom-action@v1.2.3",
            "actions/checkout@v3",
        ]

    def test_local_and_pinned_actions_are_excluded(self, fixtures_dir):
        wf = load_workflow(os.path.join(fixtures_dir, "ci.yml"))
        paths = {r.action_path for r in wf.references}
        assert "actions/cache" not in paths
        assert not any(p.startswith("./") for p in paths)

    def test_step_metadata(self, fixtures_dir):
        wf = load_workflow(os.path.join(fixtures_dir, "ci.yml"))
        first = wf.references[0]
        assert first.job_id == "test"
        assert first.step_name == "Checkout"
        assert first.line_number is not None and first.line_number >= 1

    def test_text_is_kept_verbatim(self, fixtures_dir):
        path = os.path.join(fixtures_dir, "ci.yml")
        wf = load_workflow(path)
        with open(path, encoding="utf-8", newline="") as f:
            assert wf.text == f.read()

    def test_fully_pinned_file(self, fixtures_dir):
        wf = load_workflow(os.path.join(fixtures_dir, "pinned.yml"))
        assert wf.references == []

    def test_invalid_yaml_file(self, tmp_path):
        bad_file = tmp_path / "bad.yml"
        bad_file.write_text("just a string, not a mapping")
        with pytest.raises(MalformedWorkflow):
            load_workflow(str(bad_file))


# ---------------------------------------------------------------------------
# discover_workflow_files
# ---------------------------------------------------------------------------

class TestDiscoverWorkflowFiles:
    def test_finds_yml_and_yaml(self, fixtures_dir):
        files = discover_workflow_files(fixtures_dir)
        names = [os.path.basename(f) for f in files]
        assert names == ["ci.yml", "pinned.yml", "release.yaml"]

    def test_ignores_other_files_and_subdirectories(self, tmp_path):
        (tmp_path / "ci.yml").write_text("name: CI\n")
        (tmp_path / "README.md").write_text("docs")
        nested = tmp_path / "nested"
        nested.mkdir()
        (nested / "deep.yml").write_text("name: Deep\n")
        files = discover_workflow_files(str(tmp_path))
        assert [os.path.basename(f) for f in files] == ["ci.yml"]

    def test_exclude_patterns(self, fixtures_dir):
        files = discover_workflow_files(fixtures_dir, exclude=["release.*"])
        assert not any(f.endswith("release.yaml") for f in files)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(DirectoryNotFound):
            discover_workflow_files(str(tmp_path / "nope"))

    def test_not_a_directory(self, tmp_path):
        fake = tmp_path / "not-a-dir"
        fake.write_text("hello")
        with pytest.raises(NotADirectoryError):
            discover_workflow_files(str(fake))

    def test_empty_directory(self, tmp_path):
        assert discover_workflow_files(str(tmp_path)) == []
