"""Cloud-init user-data, meta-data and seed ISO generation."""

from __future__ import annotations

import base64
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .errors import CloudInitError, path_to_str
from .models import CloudInitConfig

DEFAULT_MASK_UNITS = (
    "apt-daily.service",
    "apt-daily.timer",
    "apt-daily-upgrade.service",
    "apt-daily-upgrade.timer",
    "motd-news.service",
    "motd-news.timer",
    "unattended-upgrades.service",
    "man-db.service",
    "man-db.timer",
    "fstrim.service",
    "fstrim.timer",
    "e2scrub_all.service",
    "e2scrub_all.timer",
    "ua-timer.service",
    "ua-timer.timer",
    "snapd.service",
    "snapd.socket",
    "snapd.seeded.service",
    "snapd.autoimport.service",
)

_SHELL_WRAPPER = (
    "  - path: /usr/local/bin/intar-shell\n"
    "    permissions: '0755'\n"
    "    content: |\n"
    "      #!/usr/bin/env bash\n"
    "      set -euo pipefail\n"
    "      REAL_SHELL=/bin/bash\n"
    "      AGENT=/usr/local/bin/intar-agent\n"
    "      \n"
    '      if [ "${1:-}" = "-c" ]; then\n'
    '        cmd="${2:-}"\n'
    '        exec "$AGENT" record-command "$REAL_SHELL" "$cmd"\n'
    "      fi\n"
    "      \n"
    '      exec "$AGENT" record-ssh "$REAL_SHELL"\n'
)

_AGENT_UNIT = (
    "  - path: /etc/systemd/system/intar-agent.service\n"
    "    content: |\n"
    "      [Unit]\n"
    "      Description=Intar Probe Agent\n"
    "      After=multi-user.target\n"
    "      \n"
    "      [Service]\n"
    "      Type=simple\n"
    "      ExecStart=/usr/local/bin/intar-agent\n"
    "      RuntimeDirectory=intar\n"
    "      RuntimeDirectoryMode=0755\n"
    "      Restart=always\n"
    "      RestartSec=1\n"
    "      \n"
    "      [Install]\n"
    "      WantedBy=multi-user.target\n"
)

_NO_TOOL_MESSAGE = (
    "No ISO creation tool available. Install one of: cloud-localds, "
    "mkisofs (brew install cdrtools), genisoimage, or xorriso"
)


def _lines(text: str) -> list[str]:
    """Split on newlines, dropping a trailing empty line and any '\\r' before '\\n'."""
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def _run_tool(name: str, args: list[str]) -> None:
    try:
        result = subprocess.run([name, *args], capture_output=True)
    except OSError as e:
        raise CloudInitError(str(e)) from e
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", "replace")
        raise CloudInitError(f"{name} failed: {stderr}")


@dataclass
class CloudInitGenerator:
    """Builds the cloud-init seed that provisions the guest agent and user."""

    ssh_public_key: str
    agent_binary: bytes

    def generate_user_data(self, config: CloudInitConfig, hostname: str) -> str:
        """Render the #cloud-config user-data document."""
        agent_base64 = base64.b64encode(self.agent_binary).decode("ascii")
        out = [
            "#cloud-config\n",
            f"hostname: {hostname}\n",
            "package_update: false\n",
            "package_upgrade: false\n",
            "users:\n",
            "  - name: user\n",
            "    sudo: ALL=(ALL) NOPASSWD:ALL\n",
            "    shell: /usr/local/bin/intar-shell\n",
            "    ssh_authorized_keys:\n",
            f"      - {self.ssh_public_key}\n",
        ]

        if config.packages:
            out.append("packages:\n")
            out.extend(f"  - {pkg}\n" for pkg in config.packages)

        out.append("write_files:\n")
        out.append("  - path: /usr/local/bin/intar-agent\n")
        out.append("    permissions: '0755'\n")
        out.append("    encoding: base64\n")
        out.append(f"    content: {agent_base64}\n")
        out.append(_SHELL_WRAPPER)
        out.append(_AGENT_UNIT)

        for file in config.write_files:
            out.append(f"  - path: {file.path}\n")
            if file.permissions is not None:
                out.append(f"    permissions: '{file.permissions}'\n")
            out.append("    content: |\n")
            out.extend(f"      {line}\n" for line in _lines(file.content))

        out.append("runcmd:\n")
        out.append("  - systemctl daemon-reload\n")
        out.append(
            "  - grep -qxF /usr/local/bin/intar-shell /etc/shells"
            " || echo /usr/local/bin/intar-shell >> /etc/shells\n"
        )
        out.append("  - |\n")
        out.append("      if command -v systemctl >/dev/null 2>&1; then\n")
        out.append("        for unit in" + "".join(f" {u}" for u in DEFAULT_MASK_UNITS) + ";\n")
        out.append("        do\n")
        out.append('          systemctl mask "$unit" || true\n')
        out.append("        done\n")
        out.append("      fi\n")

        if config.runcmd is not None:
            for line in _lines(config.runcmd):
                trimmed = line.strip()
                if trimmed:
                    out.append(f"  - {trimmed}\n")

        out.append("  - systemctl enable intar-agent\n")
        out.append("  - systemctl start intar-agent\n")
        return "".join(out)

    def generate_meta_data(self, instance_id: str, hostname: str) -> str:
        """Render the meta-data document."""
        return f"instance-id: {instance_id}\nlocal-hostname: {hostname}\n"

    def save_to_logs(
        self, config: CloudInitConfig, hostname: str, logs_dir: str | os.PathLike
    ) -> None:
        """Write the generated documents into ``logs_dir`` for inspection."""
        logs_dir = Path(logs_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        (logs_dir / "user-data.yaml").write_text(
            self.generate_user_data(config, hostname), encoding="utf-8"
        )
        (logs_dir / "meta-data.yaml").write_text(
            self.generate_meta_data(hostname, hostname), encoding="utf-8"
        )
        if config.network_config is not None:
            (logs_dir / "network-config.yaml").write_text(
                config.network_config, encoding="utf-8"
            )

    def create_iso(
        self, config: CloudInitConfig, hostname: str, output_path: str | os.PathLike
    ) -> None:
        """Build the seed ISO with the first ISO tool that works."""
        output_path = Path(output_path)
        try:
            temp = tempfile.TemporaryDirectory()
        except OSError as e:
            raise CloudInitError(f"Failed to create temp dir: {e}") from e

        with temp as temp_dir:
            root = Path(temp_dir)
            user_data = root / "user-data"
            meta_data = root / "meta-data"
            network = root / "network-config" if config.network_config is not None else None

            user_data.write_text(self.generate_user_data(config, hostname), encoding="utf-8")
            meta_data.write_text(self.generate_meta_data(hostname, hostname), encoding="utf-8")
            if network is not None:
                network.write_text(config.network_config, encoding="utf-8")

            attempts = (
                _try_cloud_localds,
                _try_mkisofs,
                _try_genisoimage,
                _try_xorriso,
                _try_hdiutil,
            )
            for attempt in attempts:
                try:
                    attempt(output_path, user_data, meta_data, network)
                    return
                except (CloudInitError, OSError):
                    continue
            raise CloudInitError(_NO_TOOL_MESSAGE)


def _iso_file_args(user_data: Path, meta_data: Path, network: Path | None) -> list[str]:
    args = [path_to_str(user_data), path_to_str(meta_data)]
    if network is not None:
        args.append(path_to_str(network))
    return args


def _mkisofs_args(output: Path, user_data: Path, meta_data: Path, network: Path | None) -> list[str]:
    return [
        "-output", path_to_str(output),
        "-volid", "cidata",
        "-joliet", "-rock",
        *_iso_file_args(user_data, meta_data, network),
    ]


def _try_cloud_localds(output: Path, user_data: Path, meta_data: Path, network: Path | None) -> None:
    args = []
    if network is not None:
        args.append(f"--network-config={path_to_str(network)}")
    args.extend([path_to_str(output), path_to_str(user_data), path_to_str(meta_data)])
    _run_tool("cloud-localds", args)


def _try_mkisofs(output: Path, user_data: Path, meta_data: Path, network: Path | None) -> None:
    _run_tool("mkisofs", _mkisofs_args(output, user_data, meta_data, network))


def _try_genisoimage(output: Path, user_data: Path, meta_data: Path, network: Path | None) -> None:
    _run_tool("genisoimage", _mkisofs_args(output, user_data, meta_data, network))


def _try_xorriso(output: Path, user_data: Path, meta_data: Path, network: Path | None) -> None:
    _run_tool("xorriso", ["-as", "mkisofs", *_mkisofs_args(output, user_data, meta_data, network)])


def _try_hdiutil(output: Path, user_data: Path, meta_data: Path, network: Path | None) -> None:
    try:
        temp = tempfile.TemporaryDirectory()
    except OSError as e:
        raise CloudInitError(str(e)) from e
    with temp as temp_dir:
        iso_root = Path(temp_dir) / "cidata"
        iso_root.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(user_data, iso_root / "user-data")
        shutil.copyfile(meta_data, iso_root / "meta-data")
        if network is not None:
            shutil.copyfile(network, iso_root / "network-config")
        _run_tool(
            "hdiutil",
            ["makehybrid", "-iso", "-joliet", "-o", os.fspath(output), os.fspath(iso_root)],
        )