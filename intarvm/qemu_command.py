"""QEMU command-line construction and local port discovery."""

from __future__ import annotations

import logging
import socket
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import NoFreePortError, QemuError
from .host_socket import HostSocket
from .models import VmDefinition

logger = logging.getLogger(__name__)

MAIN_DISK_NODE_NAME = "intar_disk0"
CLOUD_INIT_NODE_NAME = "intar_cloud_init0"

TCG_CPU_COUNT = 3

EFI_FIRMWARE_PATHS = (
    "/opt/homebrew/share/qemu/edk2-aarch64-code.fd",
    "/usr/share/qemu/edk2-aarch64-code.fd",
    "/usr/share/AAVMF/AAVMF_CODE.fd",
)

_X86_ARCHES = ("x86_64", "amd64")
_ARM_ARCHES = ("aarch64", "arm64")


class QemuAccel(Enum):
    """How QEMU executes guest code."""

    DEFAULT = "default"
    TCG = "tcg"


@dataclass(frozen=True)
class DgramEndpoint:
    """A VM's port on a UDP datagram L2 segment routed through the LAN switch."""

    hub_port: int
    local_port: int


@dataclass(frozen=True)
class QemuSockets:
    """Host sockets for QMP, the agent channel and the action channel."""

    qmp: HostSocket
    serial: HostSocket
    actions: HostSocket


@dataclass
class QemuInstanceConfig:
    """Everything needed to describe one VM instance before it starts."""

    definition: VmDefinition
    ssh_port: int
    mgmt_ip: str
    sockets: QemuSockets
    shared_lan: DgramEndpoint | None = None
    primary_mac: str | None = None
    lan_mac: str | None = None


@dataclass
class QemuLayout:
    """Resolved VM settings and file locations from which QEMU arguments are built."""

    name: str
    definition: VmDefinition
    ssh_port: int
    mgmt_ip: str
    sockets: QemuSockets
    disk_path: Path
    cloud_init_iso: Path
    logs_dir: Path
    shared_lan: DgramEndpoint | None = None
    primary_mac: str | None = None
    lan_mac: str | None = None


def qemu_binary_for_arch(arch: str) -> str:
    """Name of the QEMU system emulator for an architecture."""
    if arch in _X86_ARCHES:
        return "qemu-system-x86_64"
    if arch in _ARM_ARCHES:
        return "qemu-system-aarch64"
    raise QemuError(f"Unsupported architecture: {arch}")


def log_indicates_accel_failure(log: str) -> bool:
    """Whether QEMU's output shows the hardware accelerator could not be used."""
    haystack = log.lower()
    hvf = "hvf" in haystack and "unsupported" in haystack
    kvm = (
        "failed to initialize kvm" in haystack
        or "could not access kvm kernel module" in haystack
        or ("kvm" in haystack and "permission denied" in haystack)
    )
    whpx = "whpx" in haystack and any(
        phrase in haystack
        for phrase in ("failed", "not supported", "not present", "permission denied")
    )
    return hvf or kvm or whpx


def _current_os() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def _machine_args(arch: str, accel: QemuAccel) -> list[str]:
    if arch in _ARM_ARCHES:
        args = ["-machine", "virt,highmem=on"]
        if accel is QemuAccel.DEFAULT:
            args += ["-cpu", "host"]
        firmware = next((p for p in EFI_FIRMWARE_PATHS if Path(p).exists()), None)
        if firmware is not None:
            args += ["-bios", firmware]
        return args
    if arch in _X86_ARCHES:
        cpu = "host" if accel is QemuAccel.DEFAULT else "qemu64"
        return ["-machine", "q35", "-cpu", cpu]
    return []


def _resource_args(layout: QemuLayout, accel: QemuAccel) -> list[str]:
    cpu = layout.definition.cpu
    if accel is QemuAccel.TCG and cpu != TCG_CPU_COUNT:
        logger.warning(
            "Reducing vCPU count from %s to %s for VM %s under TCG",
            cpu,
            TCG_CPU_COUNT,
            layout.name,
        )
        cpu = TCG_CPU_COUNT
    return ["-m", f"{layout.definition.memory}M", "-smp", str(cpu)]


def _drive_args(layout: QemuLayout, accel: QemuAccel) -> list[str]:
    cache = ",cache=unsafe" if accel is QemuAccel.TCG else ""
    return [
        "-drive",
        f"file={layout.disk_path},format=qcow2,if=virtio,"
        f"node-name={MAIN_DISK_NODE_NAME}{cache}",
        "-drive",
        f"file={layout.cloud_init_iso},format=raw,if=virtio,readonly=on,"
        f"node-name={CLOUD_INIT_NODE_NAME}",
    ]


def _rng_args(host_os: str) -> list[str]:
    # A virtio RNG avoids entropy-related boot stalls.
    if host_os == "windows":
        return []
    return [
        "-object", "rng-random,id=rng0,filename=/dev/urandom",
        "-device", "virtio-rng-pci,rng=rng0",
    ]


def _nic(netdev: str, mac: str | None) -> str:
    device = f"virtio-net-pci,netdev={netdev}"
    if mac is not None:
        device += f",mac={mac}"
    return device


def _network_args(layout: QemuLayout) -> list[str]:
    args = [
        "-netdev",
        f"user,id=net0,hostfwd=tcp::{layout.ssh_port}-{layout.mgmt_ip}:22",
        "-device",
        _nic("net0", layout.primary_mac),
    ]
    lan = layout.shared_lan
    if lan is not None:
        args += [
            "-netdev",
            "dgram,id=net1,local.type=inet,local.host=127.0.0.1,"
            f"local.port={lan.local_port},remote.type=inet,"
            f"remote.host=127.0.0.1,remote.port={lan.hub_port}",
            "-device",
            _nic("net1", layout.lan_mac),
        ]
    return args


def _agent_serial_args(layout: QemuLayout) -> list[str]:
    return [
        "-device", "virtio-serial-pci,id=virtio-serial0",
        "-chardev", layout.sockets.serial.chardev_arg("agent"),
        "-device", "virtserialport,chardev=agent,name=intar.agent",
        "-chardev", layout.sockets.actions.chardev_arg("actions"),
        "-device", "virtserialport,chardev=actions,name=intar.actions",
    ]


def _console_args(layout: QemuLayout) -> list[str]:
    console_log = layout.logs_dir / "console.log"
    return [
        "-chardev", f"file,id=console,path={console_log}",
        "-serial", "chardev:console",
    ]


def _misc_args(accel: QemuAccel, host_os: str) -> list[str]:
    args = ["-display", "none"]
    if accel is QemuAccel.TCG:
        args += ["-accel", "tcg,thread=multi"]
    elif host_os == "windows":
        args += ["-accel", "whpx"]
    elif host_os == "macos":
        args += ["-accel", "hvf"]
    elif host_os == "linux":
        args.append("-enable-kvm")
    return args


def build_qemu_args(
    layout: QemuLayout,
    arch: str,
    accel: QemuAccel = QemuAccel.DEFAULT,
    host_os: str | None = None,
) -> list[str]:
    """QEMU arguments (without the binary) for a VM.

    ``host_os`` is "linux", "macos" or "windows"; it defaults to the running system.
    """
    host_os = host_os or _current_os()
    return [
        "-name", layout.name,
        *_machine_args(arch, accel),
        *_resource_args(layout, accel),
        *_drive_args(layout, accel),
        *_rng_args(host_os),
        *_network_args(layout),
        *_agent_serial_args(layout),
        *_console_args(layout),
        "-qmp", layout.sockets.qmp.qmp_arg(),
        *_misc_args(accel, host_os),
    ]


def find_free_port() -> int:
    """A localhost TCP port that was free a moment ago."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            return sock.getsockname()[1]
    except OSError:
        raise NoFreePortError() from None


def find_free_udp_port() -> int:
    """A localhost UDP port that was free a moment ago."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.bind(("127.0.0.1", 0))
            return sock.getsockname()[1]
    except OSError:
        raise NoFreePortError() from None


def find_free_ports(count: int) -> list[int]:
    """``count`` localhost TCP ports, each found free when probed."""
    return [find_free_port() for _ in range(count)]