# tests/test_external_addr.py
import pytest
import requests

from monoctl.p2p import external_addr
from monoctl.p2p.external_addr import PublicIPDetector, format_external_address, is_public_ip


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text


class FakeSession:
    """Maps url -> FakeResponse or exception."""

    def __init__(self, answers):
        self.answers = answers
        self.headers = {}
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        a = self.answers[url]
        if isinstance(a, Exception):
            raise a
        return a


@pytest.mark.parametrize(
    "ip,expected",
    [
        ("135.181.202.153", True),
        ("2a01:4f9:c012:99f3::1", True),
        ("10.0.0.5", False),
        ("192.168.1.10", False),
        ("172.16.0.1", False),
        ("127.0.0.1", False),
        ("169.254.1.1", False),
        ("0.0.0.0", False),
        ("::1", False),
        ("fe80::1%eth0", False),
        ("fd00::1", False),
        ("224.0.0.1", False),
        ("not-an-ip", False),
        ("", False),
    ],
)
def test_is_public_ip(ip, expected):
    assert is_public_ip(ip) is expected


def test_format_external_address():
    assert format_external_address("135.181.202.153") == "tcp://135.181.202.153:26656"
    assert format_external_address("2a01:4f9::1", 26666) == "tcp://[2a01:4f9::1]:26666"


def test_detector_skips_failures_and_private_answers():
    session = FakeSession(
        {
            "https://a.invalid": requests.ConnectionError("boom"),
            "https://b.invalid": FakeResponse(503, "busy"),
            "https://c.invalid": FakeResponse(200, "10.0.0.7\n"),
            "https://d.invalid": FakeResponse(200, "135.181.202.153\n"),
        }
    )
    det = PublicIPDetector(
        endpoints=["https://a.invalid", "https://b.invalid", "https://c.invalid", "https://d.invalid"],
        timeout=2,
        session=session,
    )
    assert det() == "135.181.202.153"
    assert [u for u, _ in session.calls][-1] == "https://d.invalid"
    assert all(t == 2.0 for _, t in session.calls)
    assert "User-Agent" in session.headers


def test_detector_returns_empty_when_nothing_public():
    session = FakeSession({"https://a.invalid": FakeResponse(200, "192.168.0.2")})
    assert PublicIPDetector(endpoints=["https://a.invalid"], session=session).detect() == ""


def test_detector_uses_settings_endpoints(monkeypatch):
    seen = []

    def fake_detect(self):
        seen.append(list(self.endpoints))
        return ""

    monkeypatch.setattr(PublicIPDetector, "detect", fake_detect)
    assert external_addr.detect_public_ip() == ""
    assert seen and seen[0]
