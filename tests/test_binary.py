# tests/test_binary.py
import stat

import pytest

from monoctl import binary
from monoctl.errors import ErrorKind, MonoctlError

from conftest import NODE_ID


@pytest.mark.parametrize(
    "hostname,expected",
    [
        ("Node1.Example.COM", "node1-example-com"),
        ("  seed-eu  ", "seed-eu"),
        ("a-very-long-hostname.datacenter.example.net", "a-very-long-hostname"),
        ("", "mono-node"),
    ],
)
def test_generate_moniker(hostname, expected):
    assert binary.generate_moniker(hostname) == expected


def test_generate_moniker_from_host():
    m = binary.generate_moniker()
    assert m
    assert len(m) <= binary.MAX_MONIKER_LEN


def test_parse_node_id():
    out = 'I[2025] init\n{"app_message":{},"chain_id":"mono-sprint-1","node_id":"' + NODE_ID.upper() + '"}\n'
    assert binary.parse_node_id(out) == NODE_ID
    assert binary.parse_node_id('{"node_id": "short"}') == ""
    assert binary.parse_node_id("") == ""


def test_find_binary_provided(tmp_path):
    exe = tmp_path / "custom-monod"
    exe.write_text("#!/bin/sh\n")
    assert binary.find_binary(str(exe)) == exe

    with pytest.raises(MonoctlError) as ei:
        binary.find_binary(str(tmp_path / "nope"))
    assert ei.value.kind == ErrorKind.BINARY_NOT_FOUND


def test_find_binary_in_home_bin(tmp_path):
    home = tmp_path / "node"
    exe = home / "bin" / "monod"
    exe.parent.mkdir(parents=True)
    exe.write_text("#!/bin/sh\n")
    exe.chmod(exe.stat().st_mode | stat.S_IXUSR)
    assert binary.find_binary(home=home) == exe


def test_find_binary_not_found(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path / "empty"))
    monkeypatch.setattr(binary, "SYSTEM_BIN_DIR", tmp_path / "usr-local-bin")
    with pytest.raises(MonoctlError) as ei:
        binary.find_binary(home=tmp_path / "node")
    assert ei.value.kind == ErrorKind.BINARY_NOT_FOUND
    assert "monoctl monod install" in ei.value.message


def test_init_node(fake_monod, tmp_path):
    home = tmp_path / "fresh"
    node_id = binary.init_node(fake_monod, home, "my-node", "mono-sprint-1")
    assert node_id == NODE_ID
    assert (home / "config" / "config.toml").exists()
    assert (home / "data" / "priv_validator_state.json").exists()


def test_init_node_failure(tmp_path):
    exe = tmp_path / "bad-monod"
    exe.write_text("#!/bin/sh\necho 'home already initialized' >&2\nexit 3\n")
    exe.chmod(exe.stat().st_mode | stat.S_IXUSR)
    with pytest.raises(MonoctlError) as ei:
        binary.init_node(exe, tmp_path / "n", "m", "mono-sprint-1")
    assert ei.value.kind == ErrorKind.INIT_FAILED
    assert "exit status 3" in ei.value.message
    assert "home already initialized" in ei.value.message


def test_init_node_tolerates_non_utf8_output(tmp_path):
    exe = tmp_path / "noisy-monod"
    exe.write_text(
        "#!/bin/sh\n"
        "printf '\\377\\376 banner\\n' >&2\n"
        'echo \'{"node_id":"' + NODE_ID + '"}\' >&2\n'
    )
    exe.chmod(exe.stat().st_mode | stat.S_IXUSR)
    assert binary.init_node(exe, tmp_path / "n", "m", "mono-sprint-1") == NODE_ID


def test_init_node_failure_with_non_utf8_output(tmp_path):
    exe = tmp_path / "bad-monod"
    exe.write_text("#!/bin/sh\nprintf 'bad \\377 home\\n' >&2\nexit 1\n")
    exe.chmod(exe.stat().st_mode | stat.S_IXUSR)
    with pytest.raises(MonoctlError) as ei:
        binary.init_node(exe, tmp_path / "n", "m", "mono-sprint-1")
    assert ei.value.kind == ErrorKind.INIT_FAILED
    assert "bad \ufffd home" in ei.value.message
