"""Turn VM steps into cloud-init scripts and run commands."""

from __future__ import annotations

import json
from collections.abc import Iterable

from .models import (
    CloudInitConfig,
    Command,
    FileDelete,
    FileReplace,
    FileWrite,
    K8sApply,
    K8sDeployment,
    K8sNamespace,
    K8sService,
    Systemctl,
    VmAction,
    VmStep,
    WriteFile,
)

_HIDDEN_DIR = "/run"
_VISIBLE_DIR = "/usr/local/bin"


def apply_vm_steps_to_cloud_init(
    vm_name: str, steps: Iterable[VmStep], config: CloudInitConfig
) -> None:
    """Add a script and a run command to ``config`` for every step."""
    steps = list(steps)
    if not steps:
        return

    runcmd = config.runcmd or ""
    vm_slug = slugify(vm_name)

    for step in steps:
        step_slug = slugify(step.name)
        hidden = is_hidden_step(step)
        directory = _HIDDEN_DIR if hidden else _VISIBLE_DIR
        script_path = f"{directory}/intar-step-{vm_slug}-{step_slug}.sh"
        script = render_step_script(vm_slug, step_slug, step, hidden)

        config.write_files.append(
            WriteFile(path=script_path, content=script, permissions="0755")
        )

        if hidden:
            line = f"bash {script_path}"
        else:
            line = f"cloud-init-per once intar-step-{vm_slug}-{step_slug} {script_path}"
        runcmd = _append_runcmd_line(runcmd, line)

    config.runcmd = runcmd


def render_step_script(vm_slug: str, step_slug: str, step: VmStep, hidden: bool) -> str:
    """Render the bash script that performs every action of a step."""
    out: list[str] = []
    _render_header(out, vm_slug, step_slug, hidden)
    for idx, action in enumerate(step.actions):
        _render_action(out, step_slug, idx, action)
    if not hidden:
        out.append(f'echo "[intar] step {vm_slug}/{step_slug} complete"\n')
    return "".join(out)


def is_hidden_step(step: VmStep) -> bool:
    """Steps that break things run silently and delete their own script."""
    name = step.name.lower()
    return name.startswith("break") or "break-" in name or "break_" in name


def slugify(text: str) -> str:
    """Lower-case ASCII letters and digits, keeping '-' and '_', other runs as one '-'."""
    out: list[str] = []
    last_dash = False
    for ch in text:
        if ch.isascii() and ch.isalnum():
            out.append(ch.lower())
            last_dash = False
        elif ch in "-_":
            out.append(ch)
            last_dash = False
        elif out and not last_dash:
            out.append("-")
            last_dash = True
    slug = "".join(out).rstrip("-")
    return slug or "step"


def shell_quote(text: str) -> str:
    """Quote a string for POSIX shells using single quotes."""
    return "'" + text.replace("'", "'\\''") + "'"


def _append_runcmd_line(runcmd: str, line: str) -> str:
    if runcmd and not runcmd.endswith("\n"):
        runcmd += "\n"
    return f"{runcmd}{line}\n"


def _with_newline(text: str) -> str:
    return text if text.endswith("\n") else text + "\n"


def _render_header(out: list[str], vm_slug: str, step_slug: str, hidden: bool) -> None:
    out.append("#!/usr/bin/env bash\n")
    out.append("set -euo pipefail\n")
    if hidden:
        out.append("trap 'rm -f -- \"$0\"' EXIT\n")
        out.append("exec >/dev/null 2>&1\n")
    else:
        out.append("LOG_DIR=/var/log/intar\n")
        out.append('mkdir -p "$LOG_DIR"\n')
        out.append(f'exec >"$LOG_DIR/step-{vm_slug}-{step_slug}.log" 2>&1\n')
        out.append(f'echo "[intar] step {vm_slug}/{step_slug} starting"\n')


def _render_action(out: list[str], step_slug: str, idx: int, action: VmAction) -> None:
    match action:
        case FileDelete(path=path):
            out.append(f"rm -f -- {shell_quote(path)}\n")
        case FileWrite(path=path, content=content, permissions=permissions):
            marker = f"INTAR_EOF_{step_slug}_{idx}"
            quoted = shell_quote(path)
            out.append(f'install -d -m 0755 -- "$(dirname -- {quoted})"\n')
            out.append(f"cat <<'{marker}' > {quoted}\n")
            out.append(_with_newline(content))
            out.append(f"{marker}\n")
            if permissions is not None:
                out.append(f"chmod {permissions} -- {quoted}\n")
        case FileReplace(path=path, pattern=pattern, replacement=replacement, regex=regex):
            _render_file_replace(out, path, pattern, replacement, regex)
        case Systemctl(unit=unit, action=systemctl_action):
            out.append(f"systemctl {systemctl_action.command()} {shell_quote(unit)}\n")
        case Command(cmd=cmd):
            out.append("\n")
            out.append(_with_newline(cmd))
        case K8sApply(manifest=manifest, kubeconfig=kubeconfig):
            _render_k8s_apply(out, step_slug, idx, kubeconfig, manifest)
        case K8sNamespace(name=name, kubeconfig=kubeconfig):
            manifest = _pretty_json(
                {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}}
            )
            _render_k8s_apply(out, step_slug, idx, kubeconfig, manifest)
        case K8sDeployment() as d:
            manifest = _pretty_json(
                {
                    "apiVersion": "apps/v1",
                    "kind": "Deployment",
                    "metadata": {"name": d.name, "namespace": d.namespace},
                    "spec": {
                        "replicas": d.replicas,
                        "selector": {"matchLabels": d.labels},
                        "template": {
                            "metadata": {"labels": d.labels},
                            "spec": {
                                "containers": [
                                    {
                                        "name": d.name,
                                        "image": d.image,
                                        "ports": [{"containerPort": d.container_port}],
                                    }
                                ],
                            },
                        },
                    },
                }
            )
            _render_k8s_apply(out, step_slug, idx, d.kubeconfig, manifest)
        case K8sService() as s:
            manifest = _pretty_json(
                {
                    "apiVersion": "v1",
                    "kind": "Service",
                    "metadata": {"name": s.name, "namespace": s.namespace},
                    "spec": {
                        "selector": s.selector,
                        "ports": [{"port": s.port, "targetPort": s.target_port}],
                    },
                }
            )
            _render_k8s_apply(out, step_slug, idx, s.kubeconfig, manifest)
        case _:
            raise TypeError(f"unknown VM action: {action!r}")


def _json_literal(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _pretty_json(value: object) -> str:
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)


def _render_file_replace(
    out: list[str], path: str, pattern: str, replacement: str, regex: bool
) -> None:
    out.append("python3 - <<'PY'\n")
    out.append("from pathlib import Path\n")
    out.append("import re\n")
    out.append(f"path = {_json_literal(path)}\n")
    out.append(f"pattern = {_json_literal(pattern)}\n")
    out.append(f"replacement = {_json_literal(replacement)}\n")
    out.append("data = Path(path).read_text(encoding='utf-8')\n")
    if regex:
        out.append("new = re.sub(pattern, replacement, data, flags=re.MULTILINE)\n")
    else:
        out.append("new = data.replace(pattern, replacement)\n")
    out.append("Path(path).write_text(new, encoding='utf-8')\n")
    out.append("PY\n")


def _render_kubeconfig_selection(out: list[str], kubeconfig: str | None) -> None:
    if kubeconfig is not None:
        out.append(f"export KUBECONFIG={shell_quote(kubeconfig)}\n")
        return
    out.append('if [ -z "${KUBECONFIG:-}" ]; then\n')
    out.append("  if [ -f /etc/rancher/k3s/k3s.yaml ]; then\n")
    out.append("    export KUBECONFIG=/etc/rancher/k3s/k3s.yaml\n")
    out.append("  elif [ -f /etc/kubernetes/admin.conf ]; then\n")
    out.append("    export KUBECONFIG=/etc/kubernetes/admin.conf\n")
    out.append("  fi\n")
    out.append("fi\n")


def _render_k8s_apply(
    out: list[str], step_slug: str, idx: int, kubeconfig: str | None, manifest: str
) -> None:
    marker = f"INTAR_K8S_MANIFEST_{step_slug}_{idx}"
    _render_kubeconfig_selection(out, kubeconfig)
    out.append(f"cat <<'{marker}' | kubectl apply -f -\n")
    out.append(_with_newline(manifest))
    out.append(f"{marker}\n")