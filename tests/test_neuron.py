"""
Tests for the GLIF neuron update and its state transitions.
"""

import numpy as np
import pytest

from glif import (
    BadPropertyError,
    GLIFNeuron,
    IncompatibleReceptorTypeError,
    NotCalibratedError,
    Phase,
    ResetAboveThresholdError,
    SpikeRecorder,
    spike_offset,
)

H = 0.1
REFRACTORY_STEPS = 38  # ceil(3.75 / 0.1)


def drive(neuron, current, n_steps, origin=0):
    """Queue a constant current for n_steps and advance the neuron over them."""
    for step in range(origin, origin + n_steps):
        neuron.handle_current(step, current)
    return neuron.update(origin, 0, n_steps)


class TestCalibration:
    """Tests for propagator derivation before simulation."""

    def test_update_requires_calibration(self):
        """Test that update fails before calibrate."""
        neuron = GLIFNeuron(1)
        with pytest.raises(NotCalibratedError):
            neuron.update(0, 0, 1)

    def test_calibrate_restarts_refractory(self, lif_neuron):
        """Test that calibration clears a running refractory countdown."""
        lif_neuron.timer.start()
        assert lif_neuron.phase is Phase.REFRACTORY

        lif_neuron.calibrate(H)
        assert lif_neuron.phase is Phase.INTEGRATING
        assert lif_neuron.timer.t_ref_total == 3.75


class TestThreshold:
    """Tests for the threshold components."""

    def test_lif_threshold_constant(self, lif_neuron):
        """Test that the LIF threshold stays at th_inf without input."""
        th_inf = lif_neuron.params.th_inf
        for step in range(500):
            lif_neuron.update(step, 0, 1)
            assert lif_neuron.state.threshold == th_inf
            assert lif_neuron.state.U == 0.0

    def test_spike_component_after_reset(self, make_neuron):
        """Test the linear voltage reset and threshold jump of variant R."""
        neuron = make_neuron({"glif_model": "lif_r"})
        neuron.state.U = 30.0
        neuron.timer.start()

        neuron.update(0, 0, REFRACTORY_STEPS)

        params = neuron.params
        assert neuron.phase is Phase.INTEGRATING
        assert neuron.state.U == pytest.approx(0.2 * 30.0 + 18.51)
        assert neuron.state.threshold == pytest.approx(params.th_inf + params.a_spike)

    def test_spike_component_decays(self, make_neuron):
        """Test the exact decay of the spike component between resets."""
        neuron = make_neuron({"glif_model": "lif_r"})
        neuron.threshold_model.last_spike = 1.0

        neuron.update(0, 0, 10)

        expected = np.exp(-neuron.params.b_spike * H * 10)
        assert neuron.threshold_model.last_spike == pytest.approx(expected)
        assert neuron.state.threshold == pytest.approx(neuron.params.th_inf + expected)

    def test_voltage_component(self, make_neuron):
        """Test that variant A lets the threshold follow the membrane."""
        neuron = make_neuron({"glif_model": "lif_r_asc_a", "asc_amps": [0.0, 0.0]})
        neuron.set_status({"V_m": neuron.params.E_L + 10.0})

        neuron.update(0, 0, 5)

        assert neuron.threshold_model.last_voltage > 0.0
        assert neuron.state.threshold > neuron.params.th_inf

    def test_voltage_component_one_step_closed_form(self, make_neuron):
        """Test one variant A step against the closed-form threshold solution."""
        neuron = make_neuron({"glif_model": "lif_r_asc_a"})
        params = neuron.params
        neuron.set_status({"V_m": params.E_L + 10.0, "ASCurrents": [5.0, -3.0]})
        neuron.state.I = 50.0
        neuron.threshold_model.last_voltage = 0.5

        neuron.update(0, 0, 1)

        v_old, lv = 10.0, 0.5
        a, b = params.a_voltage, params.b_voltage
        beta = (50.0 + 2.0) / params.G
        phi = a / (b - params.G / params.C_m)
        expected = (
            phi * (v_old - beta) * np.exp(-params.G * H / params.C_m)
            + np.exp(-b * H) * (lv - phi * (v_old - beta) - a / b * beta)
            + a / b * beta
        )
        assert neuron.threshold_model.last_voltage == pytest.approx(expected, rel=1e-10)
        assert neuron.state.threshold == pytest.approx(params.th_inf + expected, rel=1e-10)

    def test_voltage_component_zero_without_adaptation(self, make_neuron):
        """Test that the voltage component is inactive for variant R_ASC."""
        neuron = make_neuron({"glif_model": "lif_r_asc"})
        neuron.set_status({"V_m": neuron.params.E_L + 10.0})

        neuron.update(0, 0, 5)

        assert neuron.threshold_model.last_voltage == 0.0


class TestAfterSpikeCurrents:
    """Tests for after-spike current dynamics."""

    def test_reset_law(self, make_neuron):
        """Test the after-spike current values at the end of the refractory period."""
        neuron = make_neuron({"glif_model": "lif_asc"})
        x = np.array([5.0, -3.0])
        neuron.set_status({"ASCurrents": x.tolist()})
        neuron.timer.start()

        neuron.update(0, 0, REFRACTORY_STEPS)

        params = neuron.params
        expected = params.asc_amps + x * params.r * np.exp(-params.k * params.t_ref)
        np.testing.assert_allclose(neuron.ASCurrents, expected, rtol=1e-12)

    def test_sum_uses_values_before_decay(self, make_neuron):
        """Test that ASCurrents_sum is taken before the step's decay."""
        neuron = make_neuron({"glif_model": "lif_asc"})
        neuron.set_status({"ASCurrents": [5.0, -3.0]})

        neuron.update(0, 0, 1)

        assert neuron.state.ASCurrents_sum == pytest.approx(2.0)
        np.testing.assert_allclose(
            neuron.ASCurrents, np.array([5.0, -3.0]) * np.exp(-neuron.params.k * H)
        )

    def test_no_asc_for_lif(self, lif_neuron):
        """Test that after-spike currents do not act in the LIF variant."""
        lif_neuron.set_status({"ASCurrents": [5.0, -3.0]})

        lif_neuron.update(0, 0, 3)

        assert lif_neuron.state.ASCurrents_sum == 0.0
        assert lif_neuron.state.U == 0.0


class TestSpiking:
    """Tests for threshold crossing, spike timing and the refractory period."""

    def test_offset_example(self):
        """Test the interpolated offset for a symmetric crossing."""
        offset = spike_offset(v_old=-2.0, th_old=0.0, v_new=3.0, th_new=1.0, h=H)
        assert offset == pytest.approx(0.05)

    def test_offset_bounds(self):
        """Test that a crossing at step start still gives offset < h."""
        offset = spike_offset(v_old=1.0, th_old=1.0, v_new=2.0, th_new=1.0, h=H)
        assert 0.0 <= offset < H

        offset = spike_offset(v_old=0.0, th_old=1.0, v_new=2.0, th_new=1.0, h=H)
        assert offset == pytest.approx(0.05)

    def test_emits_spike(self, lif_neuron):
        """Test that a strong current produces spikes with valid offsets."""
        recorder = SpikeRecorder()
        for step in range(60):
            lif_neuron.handle_current(step, 1000.0)
        events = lif_neuron.update(0, 0, 60, sink=recorder)

        assert len(events) >= 1
        assert recorder.events == events
        for event in events:
            assert event.sender == 1
            assert 0.0 <= event.offset < H
            assert (event.step - 1) * H <= event.time(H) <= event.step * H

    def test_refractory_holds_voltage(self, lif_neuron):
        """Test that U is held during the refractory period, then reset."""
        events = drive(lif_neuron, 1000.0, 30)
        assert len(events) == 1
        assert lif_neuron.phase is Phase.REFRACTORY

        held = lif_neuron.state.U
        assert held > lif_neuron.params.th_inf

        spike_step = events[0].step
        remaining = REFRACTORY_STEPS - (30 - spike_step)
        drive(lif_neuron, 1000.0, remaining - 1, origin=30)
        assert lif_neuron.state.U == held
        assert lif_neuron.phase is Phase.REFRACTORY

        drive(lif_neuron, 1000.0, 1, origin=30 + remaining - 1)
        assert lif_neuron.phase is Phase.INTEGRATING
        assert lif_neuron.state.U == lif_neuron.params.V_reset

    def test_reset_above_threshold_is_fatal(self, make_neuron):
        """Test that a reset ending above threshold stops the neuron."""
        neuron = make_neuron({"glif_model": "lif_r", "b_reset": 30.0})
        neuron.state.U = 30.0
        neuron.timer.start()

        with pytest.raises(ResetAboveThresholdError, match="reset above threshold"):
            neuron.update(0, 0, REFRACTORY_STEPS)


class TestReceptors:
    """Tests for receptor ports and alpha-shaped synaptic currents."""

    def test_connect_valid_receptor(self, lif_neuron):
        """Test that a connection sets has_connections."""
        assert lif_neuron.connect_receptor(1) == 1
        assert lif_neuron.get_status()["has_connections"] is True

    @pytest.mark.parametrize("receptor", [0, -1, 2])
    def test_connect_invalid_receptor(self, lif_neuron, receptor):
        """Test that receptors outside 1..n are rejected."""
        with pytest.raises(IncompatibleReceptorTypeError, match="not available"):
            lif_neuron.connect_receptor(receptor)
        assert lif_neuron.params.has_connections is False

    def test_handle_spike_invalid_receptor(self, lif_neuron):
        """Test that spikes to a missing receptor are rejected."""
        with pytest.raises(IncompatibleReceptorTypeError):
            lif_neuron.handle_spike(2, 0, 1.0)

    def test_spike_acts_from_next_step(self, lif_neuron):
        """Test that a spike delivered in a step first moves U one step later."""
        lif_neuron.connect_receptor(1)
        lif_neuron.handle_spike(1, 0, 25.0, multiplicity=2)
        table = lif_neuron.table

        lif_neuron.update(0, 0, 1)
        assert lif_neuron.state.U == 0.0
        assert lif_neuron.state.synapses.y1[0] == pytest.approx(table.psc_initial_values[0] * 50.0)
        assert lif_neuron.state.synapses.y2[0] == 0.0

        lif_neuron.update(1, 0, 1)
        expected = table.P31[0] * table.psc_initial_values[0] * 50.0
        assert lif_neuron.state.U == pytest.approx(expected)
        assert lif_neuron.state.U > 0.0

    def test_psc_peak(self, lif_neuron):
        """Test that a unit-weight spike gives a current peaking at 1 pA after tau_syn."""
        lif_neuron.connect_receptor(1)
        lif_neuron.handle_spike(1, 0, 1.0)

        currents = []
        for step in range(60):
            lif_neuron.update(step, 0, 1)
            currents.append(lif_neuron.state.synapses.current())

        # Current sampled at the end of step s is the kick from step 0 after s steps
        peak = int(np.argmax(currents))
        assert peak == 20
        assert currents[peak] == pytest.approx(1.0)

    def test_grow_receptors_keeps_state(self, lif_neuron):
        """Test that adding receptors preserves existing filter state."""
        lif_neuron.connect_receptor(1)
        lif_neuron.handle_spike(1, 0, 100.0)
        lif_neuron.update(0, 0, 5)
        y1 = lif_neuron.state.synapses.y1[0]
        y2 = lif_neuron.state.synapses.y2[0]

        lif_neuron.set_status({"tau_syn": [2.0, 5.0]})

        synapses = lif_neuron.state.synapses
        assert lif_neuron.n_receptors == 2
        assert lif_neuron.table.n_receptors == 2
        assert synapses.y1[0] == y1
        assert synapses.y2[0] == y2
        assert synapses.y1[1] == 0.0 and synapses.y2[1] == 0.0

        assert lif_neuron.connect_receptor(2) == 2
        lif_neuron.handle_spike(2, 5, 10.0)
        lif_neuron.update(5, 0, 5)
        assert lif_neuron.state.synapses.y1[1] > 0.0

    def test_shrink_receptors_after_connect(self, lif_neuron):
        """Test that connected receptors cannot be removed."""
        lif_neuron.set_status({"tau_syn": [2.0, 5.0]})
        lif_neuron.connect_receptor(2)

        with pytest.raises(BadPropertyError, match="cannot be reduced"):
            lif_neuron.set_status({"tau_syn": [2.0]})

        assert lif_neuron.get_status()["tau_syn"] == [2.0, 5.0]
        assert len(lif_neuron.spike_buffers) == 2


class TestReset:
    """Tests for returning a neuron to its initial state."""

    def test_reset(self, lif_neuron):
        """Test that reset clears state, countdown and queued input."""
        drive(lif_neuron, 1000.0, 30)
        lif_neuron.handle_current(30, 1000.0)

        lif_neuron.reset()

        assert lif_neuron.state.U == 0.0
        assert lif_neuron.phase is Phase.INTEGRATING
        assert lif_neuron.current_buffer.position == 0
        lif_neuron.update(0, 0, 40)
        assert lif_neuron.state.U == 0.0
