"""
Tests for the wavelet validation script.
"""

import importlib.util
import sys
from pathlib import Path

import pytest
import yaml

SCRIPT = Path(__file__).parent.parent / "scripts" / "validation" / "validate_wavelet_basis.py"


@pytest.fixture(scope="module")
def validation():
    spec = importlib.util.spec_from_file_location("validate_wavelet_basis", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def small_config(tmp_path):
    """8 layers of 8 s at 1 s cadence over 64 pixels."""
    path = tmp_path / "small.yaml"
    path.write_text(yaml.safe_dump({
        "duration": 512.0,
        "wavelet": {"pixel_duration": 8.0, "sample_cadence": 1.0},
    }))
    return path


@pytest.mark.slow
class TestValidateWaveletBasis:
    """Test that the script honours its options."""

    def test_default_bases(self, validation, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["validate_wavelet_basis.py"])
        validation.main()

        out = capsys.readouterr().out
        assert "Projection of a tone at layer 5" in out
        assert "Paths agree" in out
        assert "Validation Complete" in out

    def test_configured_basis(self, validation, small_config, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["validate_wavelet_basis.py", "--config", str(small_config)])
        validation.main()

        out = capsys.readouterr().out
        assert "Projection of a tone at layer 2" in out
        assert "Paths agree" in out
