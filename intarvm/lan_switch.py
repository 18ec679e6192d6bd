"""A small learning L2 switch over localhost UDP, for QEMU dgram netdevs."""

from __future__ import annotations

import logging
import socket
import threading
import time
from collections.abc import Iterable

from .errors import QemuError

log = logging.getLogger(__name__)

Address = tuple[str, int]

_BUFFER_SIZE = 4 * 1024 * 1024
_MAX_FRAME = 2048
_ETHERNET_HEADER = 14


class MacTable:
    """Learns which peer owns which MAC address and decides where frames go."""

    def __init__(self, peers: Iterable[Address]) -> None:
        self.peers = list(peers)
        self._owners: dict[bytes, Address] = {}

    def _flood(self, sender: Address) -> list[Address]:
        return [peer for peer in self.peers if peer != sender]

    def route(self, frame: bytes, sender: Address) -> list[Address]:
        """Learn the frame's source and return the peers it must be sent to."""
        if len(frame) < _ETHERNET_HEADER:
            return []
        dst, src = bytes(frame[0:6]), bytes(frame[6:12])
        self._owners[src] = sender

        # The group bit covers broadcast as well as multicast.
        if dst[0] & 0x01:
            return self._flood(sender)

        target = self._owners.get(dst)
        if target is None:
            return self._flood(sender)
        return [] if target == sender else [target]


class LanSwitch:
    """A background thread forwarding Ethernet frames between UDP peers."""

    def __init__(self, sock: socket.socket, peers: Iterable[Address]) -> None:
        self._socket = sock
        self._table = MacTable(peers)
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="intar-lan-switch", daemon=True
        )

    @classmethod
    def spawn(cls, hub_port: int, peers: Iterable[Address]) -> LanSwitch:
        """Bind the hub on localhost and start forwarding."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind(("127.0.0.1", hub_port))
        except OSError as e:
            sock.close()
            raise QemuError(f"Failed to bind LAN hub UDP socket: {e}") from e
        try:
            sock.settimeout(0.2)
        except OSError as e:
            sock.close()
            raise QemuError(f"Failed to configure LAN hub socket: {e}") from e
        for option, kind in ((socket.SO_RCVBUF, "recv"), (socket.SO_SNDBUF, "send")):
            try:
                sock.setsockopt(socket.SOL_SOCKET, option, _BUFFER_SIZE)
            except OSError as e:
                log.warning("Failed to increase LAN hub %s buffer: %s", kind, e)

        switch = cls(sock, peers)
        try:
            switch._thread.start()
        except RuntimeError as e:
            sock.close()
            raise QemuError(f"Failed to start LAN switch thread: {e}") from e
        return switch

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        try:
            hub = "%s:%d" % self._socket.getsockname()
        except OSError:
            hub = "<unknown>"
        log.info("LAN switch started hub=%s peers=%d", hub, len(self._table.peers))

        while not self._stop_event.is_set():
            try:
                frame, sender = self._socket.recvfrom(_MAX_FRAME)
            except TimeoutError:
                continue
            except OSError as e:
                if self._stop_event.is_set():
                    break
                log.warning("LAN switch recv error: %s", e)
                time.sleep(0.1)
                continue

            for target in self._table.route(frame, sender):
                try:
                    self._socket.sendto(frame, target)
                except OSError:
                    pass

        log.info("LAN switch stopped")

    def stop(self) -> None:
        """Stop forwarding and release the hub socket; safe to call twice."""
        self._stop_event.set()
        if self._thread.is_alive():
            self._thread.join()
        self._socket.close()

    def __enter__(self) -> LanSwitch:
        return self

    def __exit__(self, *args) -> None:
        self.stop()