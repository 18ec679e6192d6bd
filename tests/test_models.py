import dataclasses

import pytest

from intarvm.models import (
    CloudInitConfig,
    Command,
    FileDelete,
    FileReplace,
    FileWrite,
    ImageSource,
    K8sDeployment,
    Systemctl,
    SystemctlAction,
    VmDefinition,
    VmStep,
    WriteFile,
)


def test_enable_now_command():
    assert SystemctlAction.ENABLE_NOW.command() == "enable --now"


@pytest.mark.parametrize(
    ("action", "expected"),
    [
        (SystemctlAction.START, "start"),
        (SystemctlAction.STOP, "stop"),
        (SystemctlAction.RESTART, "restart"),
        (SystemctlAction.ENABLE, "enable"),
        (SystemctlAction.DISABLE, "disable"),
    ],
)
def test_plain_commands(action, expected):
    assert action.command() == expected


def test_cloud_init_config_defaults_are_independent():
    first = CloudInitConfig()
    second = CloudInitConfig()
    first.packages.append("nginx")
    first.write_files.append(WriteFile(path="/etc/x", content="y"))
    assert second.packages == []
    assert second.write_files == []
    assert first.runcmd is None


def test_vm_step_defaults_to_no_actions():
    step = VmStep(name="setup")
    step.actions.append(Command(cmd="true"))
    assert VmStep(name="other").actions == []
    assert step.actions == [Command(cmd="true")]


def test_actions_are_immutable():
    action = FileDelete(path="/tmp/a")
    with pytest.raises(dataclasses.FrozenInstanceError):
        action.path = "/tmp/b"
    assert action.path == "/tmp/a"


def test_action_defaults():
    assert FileWrite(path="/a", content="b").permissions is None
    assert FileReplace(path="/a", pattern="x", replacement="y").regex is False


def test_action_equality():
    assert Systemctl("nginx", SystemctlAction.STOP) == Systemctl(
        unit="nginx", action=SystemctlAction.STOP
    )
    deployment = K8sDeployment(
        name="web",
        namespace="default",
        image="nginx",
        replicas=2,
        labels={"app": "web"},
        container_port=80,
    )
    assert deployment.kubeconfig is None
    assert deployment.labels == {"app": "web"}


def test_definitions_hold_values():
    vm = VmDefinition(name="web", cpu=2, memory=2048, disk=10)
    assert (vm.name, vm.cpu, vm.memory, vm.disk) == ("web", 2, 2048, 10)
    image = ImageSource(url="https://images.example.com/x.img", checksum="sha256:ab", arch="x86_64")
    assert image.arch == "x86_64"