"""Exception hierarchy for VM management."""

from __future__ import annotations

import os


class VmError(Exception):
    """Base class for every VM management failure."""

    _prefix = ""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{self._prefix}{detail}")


class QemuError(VmError):
    """QEMU could not be prepared, launched or controlled."""

    _prefix = "QEMU error: "


class CloudInitError(VmError):
    """Cloud-init data or media could not be produced."""

    _prefix = "Cloud-init error: "


class SerialError(VmError):
    """Communication over a host socket failed."""

    _prefix = "Serial communication error: "


class QmpError(VmError):
    """A QMP exchange failed or returned an error."""

    _prefix = "QMP error: "


class VmTimeoutError(VmError):
    """An operation did not finish in time."""

    _prefix = "Timeout: "


class VmNotFoundError(VmError):
    """A VM with the given name does not exist."""

    _prefix = "VM not found: "


class NoFreePortError(VmError):
    """No free local port could be found."""

    _prefix = "No free port found"

    def __init__(self) -> None:
        super().__init__()


class DirectoryError(VmError):
    """A standard directory could not be determined."""

    _prefix = "Directory error: "


class InvalidPathError(VmError):
    """A path cannot be passed to an external command."""

    _prefix = "Invalid path: "


def path_to_str(path: str | bytes | os.PathLike) -> str:
    """Return the path as text, refusing anything that is not valid UTF-8."""
    raw = os.fspath(path)
    if isinstance(raw, bytes):
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidPathError(raw.decode("utf-8", "replace")) from None
    try:
        raw.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidPathError(raw.encode("utf-8", "replace").decode("utf-8")) from None
    return raw