"""
Network reachability check.

The device counts as online only when it has a usable network interface
and the internet is actually reachable; a captive portal intercepting the
check URL counts as offline.
"""

import socket
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from .config import NetworkConfig
from .log_sink import LogSink
from .outcome import Outcome


@dataclass(frozen=True)
class ConnectivityStatus:
    interface_connected: bool
    internet_reachable: bool

    @property
    def online(self) -> bool:
        return self.interface_connected and self.internet_reachable


OFFLINE = ConnectivityStatus(interface_connected=False, internet_reachable=False)


def has_network_interface(probe_host: str = "8.8.8.8") -> bool:
    """
    True if the OS can pick a non-loopback source address for an outbound
    route. Connecting a UDP socket sends no packets.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            sock.connect((probe_host, 80))
        except OSError:
            return False
        address = sock.getsockname()[0]
    return not (address.startswith("127.") or address == "0.0.0.0")


class ConnectivityProbe:
    """Combines the interface check and the HTTP reachability check."""

    def __init__(
        self,
        network: NetworkConfig,
        log: LogSink,
        interface_check: Callable[[], bool] = has_network_interface,
        session: Optional[requests.Session] = None,
    ):
        self._network = network
        self._log = log
        self._interface_check = interface_check
        self._session = session

    def _internet_reachable(self) -> bool:
        getter = self._session.get if self._session is not None else requests.get
        response = getter(
            self._network.connectivity_url,
            timeout=self._network.connectivity_timeout,
            allow_redirects=False,
        )
        return response.status_code == self._network.connectivity_status

    def probe(self) -> Outcome[ConnectivityStatus]:
        try:
            if not self._interface_check():
                return Outcome.ok(OFFLINE)
            return Outcome.ok(ConnectivityStatus(
                interface_connected=True,
                internet_reachable=self._internet_reachable(),
            ))
        except requests.RequestException:
            # No answer from the check URL: interface up, internet unreachable
            return Outcome.ok(ConnectivityStatus(interface_connected=True, internet_reachable=False))
        except Exception as e:
            return Outcome.failure(f"Network check error: {e}", default=OFFLINE)

    def is_online(self) -> bool:
        outcome = self.probe()
        if not outcome.success:
            self._log.error(outcome.error_message)
        online = outcome.value.online
        self._log.debug(f"Network: {'online' if online else 'offline'}")
        return online
