"""Host-side endpoints of the sockets QEMU exposes."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from .errors import SerialError

_LOCALHOST = "127.0.0.1"


@dataclass(frozen=True)
class HostSocket:
    """Either a Unix socket path or a localhost TCP address."""

    path: Path | None = None
    address: tuple[str, int] | None = None

    def __post_init__(self) -> None:
        if (self.path is None) == (self.address is None):
            raise ValueError("HostSocket needs exactly one of path or address")

    @classmethod
    def unix(cls, path: str | Path) -> HostSocket:
        """Socket at a filesystem path."""
        return cls(path=Path(path))

    @classmethod
    def tcp(cls, port: int) -> HostSocket:
        """Socket on localhost at the given TCP port."""
        return cls(address=(_LOCALHOST, port))

    def chardev_arg(self, id: str) -> str:
        """Value for QEMU's -chardev option, as a listening server."""
        if self.path is not None:
            return f"socket,id={id},path={self.path},server=on,wait=off"
        host, port = self.address
        return f"socket,id={id},host={host},port={port},server=on,wait=off"

    def qmp_arg(self) -> str:
        """Value for QEMU's -qmp option."""
        if self.path is not None:
            return f"unix:{self.path},server,nowait"
        host, port = self.address
        return f"tcp:{host}:{port},server,nowait"

    def cleanup_path(self) -> Path | None:
        """Filesystem path to remove once QEMU is gone, if any."""
        return self.path


async def connect_host_socket(
    socket: HostSocket,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a stream to the socket, raising SerialError on failure."""
    try:
        if socket.path is not None:
            open_unix = getattr(asyncio, "open_unix_connection", None)
            if open_unix is None:
                raise OSError("Unix sockets are not supported on this platform")
            return await open_unix(str(socket.path))
        host, port = socket.address
        return await asyncio.open_connection(host, port)
    except (OSError, NotImplementedError) as e:
        raise SerialError(f"Failed to connect to socket: {e}") from e