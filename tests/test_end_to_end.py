"""
End-to-end test: periodic firing of a LIF neuron under constant current.
"""

import math

import numpy as np

from glif import Simulator

E_L = -78.85
G = 9.43
C_M = 58.72
TH_INF = 27.17
T_REF = 3.75
I_E = 400.0
H = 0.1


def expected_isi():
    """Refractory steps plus RC charging steps from V_reset to threshold."""
    tau_m = C_M / G
    v_inf = I_E / G
    t_charge = tau_m * math.log(v_inf / (v_inf - TH_INF))
    return (math.ceil(T_REF / H) + math.ceil(t_charge / H)) * H


class TestPeriodicFiring:
    """Tests for the steady-state inter-spike interval."""

    def test_interspike_interval(self):
        """Test that the simulated ISI matches charging time plus refractory period."""
        sim = Simulator(H)
        sim.add_neuron(
            {
                "glif_model": "lif",
                "E_L": E_L,
                "g": G,
                "C_m": C_M,
                "V_th": E_L + TH_INF,
                "t_ref": T_REF,
                "V_reset": E_L,
            }
        )
        sim.add_dc_source(1, I_E)

        summary = sim.simulate(400.0)

        times = sim.get_spike_times(1)
        assert summary["spikes"] == len(times)
        assert len(times) >= 20

        isi = np.diff(times)[1:]
        np.testing.assert_allclose(isi, expected_isi(), rtol=1e-3)

    def test_no_firing_below_rheobase(self):
        """Test that a current below G * th_inf never reaches threshold."""
        sim = Simulator(H)
        sim.add_neuron({"glif_model": "lif"})
        sim.add_dc_source(1, 0.99 * G * TH_INF)

        sim.simulate(500.0)

        assert len(sim.get_spike_times(1)) == 0
        assert sim.neurons[1].V_m < E_L + TH_INF
