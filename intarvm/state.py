"""Lifecycle states of VMs and scenarios."""

from __future__ import annotations

from enum import Enum

_TOTAL_STEPS = 4


class VmState(Enum):
    """Boot progress of a single VM."""

    STARTING = "Starting"
    BOOTING = "Booting"
    CLOUD_INIT = "CloudInit"
    READY = "Ready"
    ERROR = "Error"

    def step(self) -> tuple[int, int]:
        """Return (current step, total steps) for progress display."""
        current = {
            VmState.STARTING: 1,
            VmState.BOOTING: 2,
            VmState.CLOUD_INIT: 3,
            VmState.READY: 4,
            VmState.ERROR: 0,
        }[self]
        return current, _TOTAL_STEPS

    def label(self) -> str:
        """Return a human-readable label."""
        if self is VmState.CLOUD_INIT:
            return "Cloud-init"
        return self.value


class ScenarioState(Enum):
    """Overall progress of a scenario run."""

    INITIALIZING = "Initializing"
    RUNNING = "Running"
    COMPLETED = "Completed"
    ERROR = "Error"