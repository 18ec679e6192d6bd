[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "intarvm"
version = "0.1.0"
description = "Building blocks for QEMU lab VMs: cloud-init seed generation, scenario step scripts, base image caching, QEMU command lines and a user-space LAN switch"
requires-python = ">=3.11"
dependencies = [
    "platformdirs",
]
keywords = ["qemu", "virtual-machine", "cloud-init", "lab", "scenario", "udp", "switch"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["intarvm"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
