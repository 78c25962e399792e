"""
Tests for the chirp lookup table.
"""

import numpy as np
import pytest

from lisa_wdm.config import LookupTableConfig
from lisa_wdm.wavelets.basis import WaveletBasis
from lisa_wdm.wavelets.lookup import WaveletLookupTable


@pytest.fixture(scope="module")
def basis():
    return WaveletBasis(n_time=64, n_layers=16, sample_cadence=1.0, oversample=16)


@pytest.fixture(scope="module")
def table(basis):
    return WaveletLookupTable(basis)


def direct_response(basis, offset, fdot):
    """Window sum evaluated without the table."""
    tau = (np.arange(basis.n_window) - basis.n_window // 2) * basis.sample_cadence
    phase = 2 * np.pi * offset * tau + np.pi * fdot * tau ** 2
    return basis.scale / np.sqrt(2) * np.sum(basis.window * np.exp(1j * phase))


class TestTableGrid:
    """Test the tabulated grid."""

    def test_axes(self, basis, table):
        config = LookupTableConfig()
        assert len(table.fdot) == config.fdot_steps
        assert table.frequency_step == pytest.approx(basis.filter_bandwidth / config.frequency_steps)
        assert table.fdot_step == pytest.approx(basis.bandwidth / basis.window_duration * config.fdot_spacing)
        assert table.fdot_min < 0 < table.fdot_max
        assert table.values.shape == (config.fdot_steps, int(table.n_frequency.max()))

    def test_slices_widen_with_fdot(self, table):
        assert np.all(table.n_frequency % 2 == 0)
        centre = len(table.fdot) // 2
        assert table.n_frequency[0] > table.n_frequency[centre]

    def test_read_only(self, table):
        with pytest.raises(ValueError):
            table.values[0, 0] = 1.0

    def test_offsets_symmetric(self, table):
        offsets = table.frequency_offsets(10)
        assert np.allclose(offsets, -offsets[::-1])

    def test_entries_match_window_sum(self, basis, table):
        index = 7
        offsets = table.frequency_offsets(index)
        for m in [0, len(offsets) // 3, len(offsets) // 2]:
            expected = direct_response(basis, offsets[m], table.fdot[index])
            assert table.values[index, m] == pytest.approx(expected, rel=1e-10, abs=1e-14)


class TestTableEvaluation:
    """Test bilinear interpolation."""

    def test_centre_value(self, basis, table):
        values, valid = table.evaluate(0.0, 0.0)
        expected = direct_response(basis, 0.0, 0.0)

        assert valid
        assert abs(values - expected) < 1e-4 * abs(expected)
        assert abs(np.imag(values)) < 1e-10 * abs(expected)

    def test_interpolates_between_nodes(self, basis, table):
        offset = 0.3 * basis.bandwidth
        fdot = 0.37 * table.fdot_step
        values, valid = table.evaluate(offset, fdot)
        expected = direct_response(basis, offset, fdot)

        assert valid
        assert abs(values - expected) < 1e-3 * abs(direct_response(basis, 0.0, 0.0))

    def test_outside_fdot_range_skipped(self, table):
        values, valid = table.evaluate([0.0, 0.0, 0.0], [table.fdot_min, table.fdot_max, 2 * table.fdot_max])
        assert not np.any(valid)
        assert np.all(values == 0)

    def test_in_range_is_strict(self, table):
        assert np.array_equal(
            table.in_range([table.fdot_min, 0.0, table.fdot_max]), [False, True, False]
        )

    def test_far_offset_is_zero(self, basis, table):
        values, valid = table.evaluate(5 * basis.bandwidth, 0.0)
        assert valid
        assert values == 0

    def test_non_finite_offset_invalid(self, table):
        values, valid = table.evaluate(np.nan, 0.0)
        assert not valid
        assert values == 0

    def test_half_bandwidth_grows_with_fdot(self, basis, table):
        assert table.half_bandwidth(0.0) == pytest.approx(0.5 * basis.filter_bandwidth, rel=0.01)
        assert table.half_bandwidth(table.fdot_max) > table.half_bandwidth(0.0)


@pytest.mark.slow
class TestTableBuild:
    """Test concurrent construction."""

    def test_threaded_build_matches_serial(self, basis, table):
        threaded = WaveletLookupTable(basis, LookupTableConfig(n_workers=4))
        assert np.array_equal(threaded.values, table.values)
