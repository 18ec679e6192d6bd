# intarvm

Building blocks for running QEMU virtual machines in hands-on lab
scenarios. The package prepares what a guest needs to boot and what QEMU
needs to be started with:

- **cloud-init** (`intarvm.cloud_init`) – `CloudInitGenerator` renders
  `user-data` and `meta-data` (installing a guest agent binary, a login
  shell wrapper, a systemd unit for the agent, your own files, packages and
  commands, and masking noisy background units). `save_to_logs` writes the
  documents to a directory; `create_iso` packs them into a `cidata` ISO
  with the first tool that works: `cloud-localds`, `mkisofs`,
  `genisoimage`, `xorriso` or `hdiutil`.
- **scenario steps** (`intarvm.vm_steps`) – `apply_vm_steps_to_cloud_init`
  turns `VmStep` actions from `intarvm.models` (`FileWrite`, `FileDelete`,
  `FileReplace`, `Systemctl`, `Command`, `K8sApply`, `K8sNamespace`,
  `K8sDeployment`, `K8sService`) into bash scripts added to
  `write_files`, plus a `runcmd` line for each. Steps whose name starts
  with `break` (or contains `break-` / `break_`) run silently from `/run`
  and delete themselves; other steps log to `/var/log/intar` and run once
  through `cloud-init-per`. `slugify` and `shell_quote` are available too.
- **images** (`intarvm.image_cache`) – `ImageCache` names cached files by
  URL and architecture (`cache_filename`), downloads missing images with
  an optional progress callback (`await ensure_image(...)`), verifies
  `sha256:` checksums and lists cached `.img` / `.qcow2` files.
- **QEMU command lines** (`intarvm.qemu_command`) – `build_qemu_args`
  produces the arguments for a VM described by a `QemuLayout`: machine and
  CPU, memory and vCPUs (3 vCPUs under TCG), the qcow2 disk and cloud-init
  drive, a virtio RNG, user-mode networking with SSH forwarding, an
  optional `DgramEndpoint` LAN link, the agent and action serial ports,
  a console log file, QMP and the accelerator (KVM, HVF, WHPX or TCG).
  `qemu_binary_for_arch` picks the emulator, `log_indicates_accel_failure`
  recognises accelerator errors in QEMU output, and `find_free_port`,
  `find_free_udp_port` and `find_free_ports` pick local ports.
- **host sockets** (`intarvm.host_socket`) – `HostSocket.unix(path)` or
  `HostSocket.tcp(port)` give the `-chardev` / `-qmp` option values;
  `connect_host_socket` opens an asyncio stream to one.
- **networking** (`intarvm.lan_switch`) – `LanSwitch.spawn(hub_port, peers)`
  starts a learning L2 switch in a thread that forwards Ethernet frames
  between localhost UDP peers (QEMU `-netdev dgram`); it is a context
  manager and stops with `stop()`. `MacTable.route` holds the forwarding
  decision on its own.
- **directories** (`intarvm.dirs`) – `IntarDirs.locate()` finds the
  cache, state and config directories; `ensure_dirs()` creates them and
  `new_run_dir()` names a run directory with `generate_run_name()`.
- **states** (`intarvm.state`) – `VmState` (with `step()` and `label()`)
  and `ScenarioState`.

## Installing

```
pip install intarvm
```

The tools it calls must be on `PATH`: one ISO tool for `create_iso`, and a
QEMU system emulator to run the arguments `build_qemu_args` produces.

## Example

```python
from pathlib import Path

from intarvm.cloud_init import CloudInitGenerator
from intarvm.host_socket import HostSocket
from intarvm.models import CloudInitConfig, Systemctl, SystemctlAction, VmDefinition, VmStep
from intarvm.qemu_command import QemuLayout, QemuSockets, build_qemu_args, qemu_binary_for_arch
from intarvm.vm_steps import apply_vm_steps_to_cloud_init

config = CloudInitConfig(packages=["nginx"])
steps = [VmStep(name="break-nginx",
                actions=[Systemctl(unit="nginx", action=SystemctlAction.STOP)])]
apply_vm_steps_to_cloud_init("web", steps, config)

generator = CloudInitGenerator(ssh_public_key="ssh-ed25519 AAAA... lab@example.com",
                               agent_binary=b"...")
generator.create_iso(config, "web", "web-cloud-init.iso")

layout = QemuLayout(
    name="web",
    definition=VmDefinition(name="web", cpu=2, memory=2048, disk=20),
    ssh_port=2222,
    mgmt_ip="10.0.2.15",
    sockets=QemuSockets(qmp=HostSocket.unix("web-qmp.sock"),
                        serial=HostSocket.unix("web-serial.sock"),
                        actions=HostSocket.unix("web-actions.sock")),
    disk_path=Path("web.qcow2"),
    cloud_init_iso=Path("web-cloud-init.iso"),
    logs_dir=Path("logs/web"),
)
command = [qemu_binary_for_arch("x86_64"), *build_qemu_args(layout, "x86_64")]
```

## What it does not do

The package builds QEMU command lines but does not start, watch or stop
QEMU processes, create qcow2 overlay disks, or send QMP commands
(checkpoints, pause, resume, reset, quit); running the command and talking
to the QMP socket is left to the caller. It also does not speak the guest
agent's protocol over the serial socket or record the action channel.

## Errors

Failures raise subclasses of `intarvm.errors.VmError`, such as
`QemuError`, `CloudInitError`, `SerialError`, `DirectoryError`,
`InvalidPathError` or `NoFreePortError`.

## Tests

```
pip install -e ".[test]"
pytest
```