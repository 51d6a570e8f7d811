"""Tests for the connectivity probe."""

import requests

from ade_backend.config import NetworkConfig
from ade_backend.connectivity import ConnectivityProbe, ConnectivityStatus

from fakes import FakeResponse, FakeSession

CHECK_URL = NetworkConfig.connectivity_url


def make_probe(log, answer, interface=True):
    session = FakeSession({("GET", CHECK_URL): answer})
    probe = ConnectivityProbe(NetworkConfig(), log, interface_check=lambda: interface, session=session)
    return probe, session


class TestConnectivityProbe:

    def test_online(self, log, messages):
        probe, session = make_probe(log, FakeResponse(204))
        assert probe.is_online() is True
        assert session.calls[0][2]["timeout"] == 5.0
        assert session.calls[0][2]["allow_redirects"] is False
        assert "Network: online" in messages("DEBUG")

    def test_no_interface_skips_http_check(self, log):
        probe, session = make_probe(log, FakeResponse(204), interface=False)
        assert probe.is_online() is False
        assert session.calls == []
        assert probe.probe().value == ConnectivityStatus(False, False)

    def test_captive_portal_is_offline(self, log):
        probe, _ = make_probe(log, FakeResponse(200, "<html>Login to Wi-Fi</html>"))
        status = probe.probe().value
        assert status.interface_connected and not status.internet_reachable
        assert probe.is_online() is False

    def test_unreachable_is_offline(self, log):
        probe, _ = make_probe(log, requests.ConnectionError("no route"))
        assert probe.is_online() is False

    def test_probe_failure_is_offline(self, log, messages):
        def broken():
            raise RuntimeError("netlink exploded")

        probe = ConnectivityProbe(NetworkConfig(), log, interface_check=broken)
        outcome = probe.probe()
        assert not outcome.success
        assert outcome.value.online is False
        assert probe.is_online() is False
        assert any("netlink exploded" in m for m in messages("ERROR"))
