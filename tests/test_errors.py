from pathlib import Path

import pytest

from intarvm.errors import (
    CloudInitError,
    DirectoryError,
    InvalidPathError,
    NoFreePortError,
    QemuError,
    QmpError,
    SerialError,
    VmError,
    VmNotFoundError,
    VmTimeoutError,
    path_to_str,
)


@pytest.mark.parametrize(
    ("cls", "prefix"),
    [
        (QemuError, "QEMU error: "),
        (CloudInitError, "Cloud-init error: "),
        (SerialError, "Serial communication error: "),
        (QmpError, "QMP error: "),
        (VmTimeoutError, "Timeout: "),
        (VmNotFoundError, "VM not found: "),
        (DirectoryError, "Directory error: "),
        (InvalidPathError, "Invalid path: "),
    ],
)
def test_messages_carry_prefix_and_detail(cls, prefix):
    err = cls("boom")
    assert str(err) == prefix + "boom"
    assert err.detail == "boom"
    assert isinstance(err, VmError)


def test_no_free_port_message():
    err = NoFreePortError()
    assert str(err) == "No free port found"
    assert isinstance(err, VmError)


def test_errors_can_be_caught_as_base():
    with pytest.raises(VmError) as info:
        path_to_str(b"/tmp/\xff")
    assert isinstance(info.value, InvalidPathError)
    assert str(info.value).startswith("Invalid path: ")


def test_path_to_str_accepts_path_objects():
    assert path_to_str(Path("/tmp/disk.qcow2")) == str(Path("/tmp/disk.qcow2"))


def test_path_to_str_accepts_plain_strings():
    assert path_to_str("relative/file") == "relative/file"


def test_path_to_str_accepts_utf8_bytes():
    assert path_to_str("/tmp/ä".encode()) == "/tmp/ä"


def test_path_to_str_rejects_invalid_bytes():
    with pytest.raises(InvalidPathError):
        path_to_str(b"/tmp/\xff")


def test_path_to_str_rejects_surrogate_escaped_text():
    with pytest.raises(InvalidPathError):
        path_to_str("/tmp/bad\udcff")