"""Scenario data that VM management works with."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass
class WriteFile:
    """A file that cloud-init writes into the guest."""

    path: str
    content: str
    permissions: str | None = None


@dataclass
class CloudInitConfig:
    """Guest customisation handed to cloud-init."""

    packages: list[str] = field(default_factory=list)
    network_config: str | None = None
    runcmd: str | None = None
    write_files: list[WriteFile] = field(default_factory=list)


class SystemctlAction(Enum):
    """A systemctl operation on a unit."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"
    ENABLE = "enable"
    DISABLE = "disable"
    ENABLE_NOW = "enable_now"

    def command(self) -> str:
        """Return the systemctl arguments that perform this action."""
        if self is SystemctlAction.ENABLE_NOW:
            return "enable --now"
        return self.value


@dataclass(frozen=True)
class FileDelete:
    path: str


@dataclass(frozen=True)
class FileWrite:
    path: str
    content: str
    permissions: str | None = None


@dataclass(frozen=True)
class FileReplace:
    path: str
    pattern: str
    replacement: str
    regex: bool = False


@dataclass(frozen=True)
class Systemctl:
    unit: str
    action: SystemctlAction


@dataclass(frozen=True)
class Command:
    cmd: str


@dataclass(frozen=True)
class K8sApply:
    manifest: str
    kubeconfig: str | None = None


@dataclass(frozen=True)
class K8sNamespace:
    name: str
    kubeconfig: str | None = None


@dataclass(frozen=True)
class K8sDeployment:
    name: str
    namespace: str
    image: str
    replicas: int
    labels: dict[str, str]
    container_port: int
    kubeconfig: str | None = None


@dataclass(frozen=True)
class K8sService:
    name: str
    namespace: str
    selector: dict[str, str]
    port: int
    target_port: int
    kubeconfig: str | None = None


VmAction = (
    FileDelete
    | FileWrite
    | FileReplace
    | Systemctl
    | Command
    | K8sApply
    | K8sNamespace
    | K8sDeployment
    | K8sService
)


@dataclass
class VmStep:
    """A named sequence of actions run once in a guest."""

    name: str
    actions: list[VmAction] = field(default_factory=list)


@dataclass
class VmDefinition:
    """Resources of one VM: memory in MiB, disk in GiB."""

    name: str
    cpu: int
    memory: int
    disk: int


@dataclass(frozen=True)
class ImageSource:
    """Where a base image comes from and how to verify it."""

    url: str
    checksum: str
    arch: str