import pytest

from intarvm.state import ScenarioState, VmState


def test_ready_is_final_step():
    assert VmState.READY.step() == (4, 4)


def test_error_has_no_progress():
    assert VmState.ERROR.step()[0] == 0


def test_steps_increase_along_boot_sequence():
    starting = VmState.STARTING.step()[0]
    booting = VmState.BOOTING.step()[0]
    cloud_init = VmState.CLOUD_INIT.step()[0]
    ready = VmState.READY.step()[0]
    assert starting < booting < cloud_init < ready


@pytest.mark.parametrize("state", list(VmState))
def test_total_steps_constant(state):
    current, total = state.step()
    assert total == VmState.READY.step()[1]
    assert 0 <= current <= total


def test_cloud_init_label():
    assert VmState.CLOUD_INIT.label() == "Cloud-init"


@pytest.mark.parametrize(
    ("state", "label"),
    [
        (VmState.STARTING, "Starting"),
        (VmState.BOOTING, "Booting"),
        (VmState.READY, "Ready"),
        (VmState.ERROR, "Error"),
    ],
)
def test_labels(state, label):
    assert state.label() == label


def test_states_round_trip_through_value():
    for state in VmState:
        assert VmState(state.value) is state
    for state in ScenarioState:
        assert ScenarioState(state.value) is state


def test_unknown_scenario_state_rejected():
    with pytest.raises(ValueError):
        ScenarioState("Paused")