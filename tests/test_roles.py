# tests/test_roles.py
import pytest

from monoctl import roles
from monoctl.drift import Severity
from monoctl.errors import MonoctlError, TomlKeyMissing
from monoctl.home import toml_patch
from monoctl.roles import NodeRole

from conftest import APP_TOML, CONFIG_TOML, write_home


def _set(home, seed_mode: bool, pruning: str):
    toml_patch.set_seed_mode(home, seed_mode)
    toml_patch.set_pruning(home, pruning, "0", "0")


def test_parse_role_aliases():
    assert roles.parse_role("full") == NodeRole.FULL_NODE
    assert roles.parse_role("FullNode") == NodeRole.FULL_NODE
    assert roles.parse_role("archive") == NodeRole.ARCHIVE_NODE
    assert roles.parse_role("seed_node") == NodeRole.SEED_NODE
    with pytest.raises(ValueError):
        roles.parse_role("validator")


def test_role_table():
    full = roles.get_role_config(NodeRole.FULL_NODE)
    assert (full.seed_mode, full.pruning, full.pruning_keep_recent, full.pruning_interval) == (
        False,
        "custom",
        "100",
        "10",
    )
    archive = roles.get_role_config(NodeRole.ARCHIVE_NODE)
    assert (archive.seed_mode, archive.pruning, archive.earliest_height_check) == (False, "nothing", False)
    seed = roles.get_role_config(NodeRole.SEED_NODE)
    assert (seed.seed_mode, seed.pruning, seed.earliest_height_check) == (True, "nothing", True)


def test_role_description():
    assert "seed_mode=true" in roles.role_description(NodeRole.SEED_NODE)
    assert roles.role_description("bogus") == "Unknown role"


def test_validate_matching_full_node(home):
    roles.apply(home, NodeRole.FULL_NODE)
    res = roles.validate(home, NodeRole.FULL_NODE)
    assert res.valid
    assert res.issues == []
    assert res.suggestions == []


def test_validate_seed_without_seed_mode_is_critical(home):
    _set(home, False, "nothing")
    res = roles.validate(home, NodeRole.SEED_NODE)
    assert not res.valid
    (issue,) = res.issues
    assert issue.field == "seed_mode"
    assert issue.severity == Severity.CRITICAL
    assert (issue.expected, issue.actual) == ("true", "false")
    assert res.suggestions == [f"Run: monoctl node configure --role seed_node --home {home}"]


def test_validate_seed_mode_on_archive_is_warning(home):
    _set(home, True, "nothing")
    res = roles.validate(home, NodeRole.ARCHIVE_NODE)
    assert [(i.field, i.severity) for i in res.issues] == [("seed_mode", Severity.WARNING)]


def test_pruning_mismatch_severity(home):
    _set(home, False, "default")
    res = roles.validate(home, NodeRole.ARCHIVE_NODE)
    assert [(i.field, i.severity) for i in res.issues] == [("pruning", Severity.WARNING)]

    _set(home, True, "nothing")
    toml_patch.set_pruning(home, "custom", "100", "10")
    res = roles.validate(home, NodeRole.SEED_NODE)
    fields = {i.field: i.severity for i in res.issues}
    assert fields["pruning"] == Severity.CRITICAL


@pytest.mark.parametrize("declared", list(NodeRole))
def test_seed_mode_with_pruning_always_critical(home, declared):
    _set(home, True, "default")
    res = roles.validate(home, declared)
    combo = [i for i in res.issues if i.field == "pruning+seed_mode"]
    assert len(combo) == 1
    assert combo[0].severity == Severity.CRITICAL
    assert not res.valid
    assert any("Seeds must serve full history" in s for s in res.suggestions)


@pytest.mark.parametrize(
    "seed_mode,pruning,expected",
    [
        (True, "nothing", NodeRole.SEED_NODE),
        (False, "nothing", NodeRole.ARCHIVE_NODE),
        (False, "default", NodeRole.FULL_NODE),
        (False, "custom", NodeRole.FULL_NODE),
    ],
)
def test_detect_current(home, seed_mode, pruning, expected):
    _set(home, seed_mode, pruning)
    assert roles.detect_current(home) == expected


def test_detect_with_absent_keys(tmp_path):
    root = write_home(tmp_path / "bare", config="[p2p]\n", app="")
    assert roles.detect_current(root) == NodeRole.FULL_NODE


def test_apply_seed_node(home):
    paths = roles.apply(home, NodeRole.SEED_NODE)
    assert paths == [str(home / "config" / "config.toml"), str(home / "config" / "app.toml")]
    assert toml_patch.get_value(home / "config" / "config.toml", "p2p", "seed_mode") is True
    assert toml_patch.get_value(home / "config" / "app.toml", "", "pruning") == "nothing"
    assert roles.detect_current(home) == NodeRole.SEED_NODE
    assert roles.validate(home, NodeRole.SEED_NODE).valid


def test_apply_dry_run(home):
    before = [(home / "config" / n).read_bytes() for n in ("config.toml", "app.toml")]
    roles.apply(home, NodeRole.SEED_NODE, dry_run=True)
    after = [(home / "config" / n).read_bytes() for n in ("config.toml", "app.toml")]
    assert before == after


def test_apply_checks_both_files_before_writing(tmp_path):
    root = write_home(tmp_path / "n", app=APP_TOML.replace('pruning-interval = "0"\n', ""))
    with pytest.raises(TomlKeyMissing):
        roles.apply(root, NodeRole.ARCHIVE_NODE)
    assert (root / "config" / "config.toml").read_text() == CONFIG_TOML


def test_is_seed_mode_allowed(home, tmp_path):
    ok, why = roles.is_seed_mode_allowed(home)
    assert not ok and "pruning=default" in why
    toml_patch.set_pruning(home, "nothing", "0", "0")
    assert roles.is_seed_mode_allowed(home) == (True, "")
    assert roles.is_seed_mode_allowed(tmp_path / "missing") == (False, "Cannot read app.toml")


def test_validate_missing_files(tmp_path):
    with pytest.raises(MonoctlError):
        roles.validate(tmp_path / "missing", NodeRole.FULL_NODE)
