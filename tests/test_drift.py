# tests/test_drift.py
from monoctl import drift
from monoctl.drift import DriftConfig, Severity
from monoctl.home import toml_patch

from conftest import APP_TOML, CONFIG_TOML, NODE_ID, NODE_ID_2, write_home

SEED = f"{NODE_ID}@seed1.sprintnet.mononodes.xyz:26656"
BOOT = f"{NODE_ID_2}@95.217.191.120:26766"


def _expected(**over):
    kw = dict(cosmos_chain_id="mono-sprint-1", evm_chain_id=262146, seeds=[SEED], bootstrap_peers=[BOOT])
    kw.update(over)
    return DriftConfig(**kw)


def _aligned(home):
    toml_patch.set_client_chain_id(home, "mono-sprint-1")
    toml_patch.set_evm_chain_id(home, 262146)
    toml_patch.patch_file(
        home / "config" / "config.toml",
        [toml_patch.Edit("p2p", "seeds", SEED), toml_patch.Edit("p2p", "persistent_peers", BOOT)],
    )


def test_no_drift_when_aligned(home):
    _aligned(home)
    drifts = drift.detect_drift(home, _expected())
    assert drifts == []
    assert not drift.has_critical_drift(drifts)
    assert drift.format_drift_report(drifts) == "No drift detected. Configuration matches canonical source."


def test_detects_every_field(home):
    drifts = drift.detect_drift(home, _expected())
    by_field = {d.field: d for d in drifts}
    assert set(by_field) == {"chain-id", "evm-chain-id", "seeds", "persistent_peers"}

    assert by_field["chain-id"].severity == Severity.CRITICAL
    assert (by_field["chain-id"].expected, by_field["chain-id"].actual) == ("mono-sprint-1", "")
    assert by_field["evm-chain-id"].actual == "262144"
    assert by_field["evm-chain-id"].file == "app.toml"
    assert by_field["seeds"].severity == Severity.WARNING
    assert by_field["persistent_peers"].expected == BOOT
    assert drift.has_critical_drift(drifts)


def test_empty_expected_peer_lists_are_not_compared(home):
    _aligned(home)
    toml_patch.patch_file(home / "config" / "config.toml", [toml_patch.Edit("p2p", "seeds", "something-else")])
    assert drift.detect_drift(home, _expected(seeds=[], bootstrap_peers=[])) == []


def test_unreadable_fields_are_skipped(tmp_path):
    root = write_home(tmp_path / "n", app=APP_TOML.replace("evm-chain-id = 262144\n", ""))
    (root / "config" / "client.toml").unlink()
    fields = {d.field for d in drift.detect_drift(root, _expected())}
    assert fields == {"seeds", "persistent_peers"}


def test_format_drift_report():
    drifts = [
        drift.DriftResult("chain-id", "mono-sprint-1", "mono-1", "client.toml", Severity.CRITICAL),
        drift.DriftResult("seeds", SEED, "", "config.toml", Severity.WARNING),
    ]
    out = drift.format_drift_report(drifts)
    assert out.startswith("DRIFT DETECTED:\n")
    assert "  [CRITICAL] client.toml chain-id: expected 'mono-sprint-1', got 'mono-1'\n" in out
    assert f"  [WARNING] config.toml seeds: expected '{SEED}', got ''\n" in out
    assert "monoctl repair" in out

    assert "monoctl repair" not in drift.format_drift_report(drifts[1:])


def test_drift_result_to_dict():
    d = drift.DriftResult("seeds", "a", "b", "config.toml", Severity.WARNING)
    assert d.to_dict() == {
        "field": "seeds",
        "expected": "a",
        "actual": "b",
        "file": "config.toml",
        "severity": "WARNING",
    }


def test_repair_clears_drift(home):
    results = drift.repair(home, _expected())
    assert [(r.file, r.field) for r in results] == [
        ("client.toml", "chain-id"),
        ("app.toml", "evm-chain-id"),
        ("config.toml", "p2p"),
    ]
    assert all(r.success for r in results)
    assert results[1].old_value == "262144"
    assert results[1].new_value == "262146"
    assert drift.detect_drift(home, _expected()) == []

    report = drift.format_repair_report(results)
    assert "  ✓ app.toml evm-chain-id: '262144' -> '262146'" in report
    assert "All repairs successful." in report


def test_repair_dry_run_changes_nothing(home):
    before = {n: (home / "config" / n).read_bytes() for n in ("config.toml", "app.toml", "client.toml")}
    results = drift.repair(home, _expected(), dry_run=True)
    assert all(r.success for r in results)
    after = {n: (home / "config" / n).read_bytes() for n in ("config.toml", "app.toml", "client.toml")}
    assert before == after

    report = drift.format_repair_report(results, dry_run=True)
    assert report.startswith("DRY RUN - No changes made\n")
    assert "All repairs successful" not in report


def test_repair_skips_evm_when_unknown(home):
    results = drift.repair(home, _expected(evm_chain_id=0))
    assert "evm-chain-id" not in [r.field for r in results]
    assert toml_patch.get_value(home / "config" / "app.toml", "evm", "evm-chain-id") == 262144


def test_repair_failure_does_not_block_other_files(tmp_path):
    root = write_home(tmp_path / "n", config=CONFIG_TOML.replace('seeds = ""\n', ""))
    results = {r.field: r for r in drift.repair(root, _expected())}

    assert results["chain-id"].success
    assert results["evm-chain-id"].success
    assert not results["p2p"].success
    assert "seeds" in results["p2p"].error
    # persistent_peers must not be written when seeds is missing
    assert (root / "config" / "config.toml").read_text() == CONFIG_TOML.replace('seeds = ""\n', "")

    report = drift.format_repair_report(list(results.values()))
    assert "  ✗ config.toml p2p" in report
    assert "    Error: " in report
    assert "All repairs successful" not in report


def test_repair_missing_file_is_reported(tmp_path):
    root = write_home(tmp_path / "n")
    (root / "config" / "client.toml").unlink()
    results = drift.repair(root, _expected())
    assert not results[0].success
    assert "monod init" in results[0].error
    assert results[2].success
