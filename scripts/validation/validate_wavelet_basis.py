#!/usr/bin/env python
"""
Validate the WDM wavelet basis and transforms.

Checks:
1. Round-trip error of the time-domain forward transform for several
   oversampling factors (should fall as the window grows)
2. Exactness of the Fourier-domain forward/inverse pair
3. Energy of white noise in the wavelet domain (sum w^2 = sigma^2 N dt)
4. Exact vs lookup-table projection of a tone

Usage:
    python scripts/validation/validate_wavelet_basis.py
    python scripts/validation/validate_wavelet_basis.py --config config/default.yaml --plot

With --config the projection check runs on the configured basis, projector,
tracker and lookup-table settings; the round-trip and energy checks always
use the small --n-time x --n-layers bases.
"""

import argparse
import logging
import sys
from dataclasses import asdict
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lisa_wdm.config import PipelineConfig, ProjectorConfig, load_config
from lisa_wdm.projection import WaveletProjector
from lisa_wdm.sources import GalacticBinaryFamily, GalacticBinaryParameters
from lisa_wdm.wavelets import (
    WaveletBasis,
    WaveletLookupTable,
    forward_transform,
    forward_transform_fourier,
    inverse_transform_time,
    plot_wavelet_pixels,
)

logger = logging.getLogger(__name__)


def check_round_trip(n_time, n_layers, seed=42):
    """Round-trip error of the time-domain transform against oversampling."""
    rng = np.random.default_rng(seed)
    data = rng.standard_normal(n_time * n_layers)

    print("=" * 60)
    print("Round trip: inverse(forward(x)) - x")
    print("=" * 60)

    errors = []
    for oversample in [4, 8, 16, 32]:
        basis = WaveletBasis(n_time, n_layers, 1.0, oversample=oversample)
        recovered = inverse_transform_time(basis, forward_transform(basis, data))
        error = np.max(np.abs(recovered - data))
        errors.append(error)
        print(f"  oversample={basis.oversample:3d}: max error {error:.3e}")

    if all(later < earlier for earlier, later in zip(errors, errors[1:])):
        print("✅ PASS: Error decreases with oversampling")
    else:
        print("❌ FAIL: Error does not decrease monotonically")

    basis = WaveletBasis(n_time, n_layers, 1.0)
    exact = inverse_transform_time(basis, forward_transform_fourier(basis, data))
    error = np.max(np.abs(exact - data))
    print(f"\n  Fourier-domain pair: max error {error:.3e}")
    print("✅ PASS: Exact to machine precision" if error < 1e-10 else "❌ FAIL: Fourier pair is not exact")
    return errors


def check_energy(n_time, n_layers, sample_cadence=0.5, sigma=2.0, seed=42):
    """Wavelet-domain energy of white noise."""
    rng = np.random.default_rng(seed)
    basis = WaveletBasis(n_time, n_layers, sample_cadence)
    data = sigma * rng.standard_normal(basis.n_samples)

    pixels = forward_transform(basis, data)
    energy = np.sum(pixels ** 2)
    expected = sigma ** 2 * basis.n_samples * sample_cadence
    ratio = energy / expected

    print("\n" + "=" * 60)
    print("Energy of white noise")
    print("=" * 60)
    print(f"  sum(w^2) = {energy:.4e}, sigma^2 N dt = {expected:.4e}, ratio {ratio:.4f}")
    print("✅ PASS: Within 5%" if abs(ratio - 1) < 0.05 else "⚠️  WARNING: Energy ratio off by more than 5%")
    return basis, pixels


def check_projection(basis, config):
    """Exact and table projections of a tone at a layer centre."""
    layer = basis.n_layers // 3
    source = GalacticBinaryParameters(f_gw=layer * basis.bandwidth, amplitude=1.0, phi_0=0.3)

    settings = asdict(config.projector)
    exact = WaveletProjector(
        basis, GalacticBinaryFamily(), config=ProjectorConfig(**{**settings, "method": "exact"}),
        tracker_config=config.tracker,
    ).project(source)
    table = WaveletProjector(
        basis, GalacticBinaryFamily(), config=ProjectorConfig(**{**settings, "method": "table"}),
        table=WaveletLookupTable(basis, config.lookup), tracker_config=config.tracker,
    ).project(source)

    expected = basis.duration / 2
    mismatch = 1 - table.match(exact)

    print("\n" + "=" * 60)
    print(f"Projection of a tone at layer {layer}")
    print("=" * 60)
    print(f"  Active pixels: {exact.count} (capacity {exact.capacity})")
    print(f"  Exact power: {exact.power():.6e} (expected {expected:.6e})")
    print(f"  Table/exact mismatch: {mismatch:.3e}")
    print("✅ PASS: Paths agree" if mismatch < 1e-3 else "❌ FAIL: Paths disagree")


def main():
    parser = argparse.ArgumentParser(description="Validate the WDM wavelet basis")
    parser.add_argument("--config", type=str, default=None, help="YAML configuration file")
    parser.add_argument("--n-time", type=int, default=64, help="Time pixels of the test bases")
    parser.add_argument("--n-layers", type=int, default=16, help="Layers of the test bases")
    parser.add_argument("--plot", action="store_true", help="Save a pixel map of the noise transform")
    parser.add_argument("--output", type=str, default="results/wdm_pixels.png", help="Plot path")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    config = load_config(args.config) if args.config else PipelineConfig()
    logger.info(f"Configured basis: {config.wavelet.n_layers} layers, duration {config.duration:.3e} s")

    print("\n" + "=" * 60)
    print("WDM WAVELET VALIDATION SUITE")
    print("=" * 60)

    check_round_trip(args.n_time, args.n_layers)
    basis, pixels = check_energy(2 * args.n_time, 2 * args.n_layers)
    if args.config:
        projection_basis = WaveletBasis.from_duration(config.duration, config.wavelet)
    else:
        projection_basis = WaveletBasis(args.n_time, args.n_layers, 1.0)
    check_projection(projection_basis, config)

    if args.plot:
        import matplotlib
        matplotlib.use("Agg")

        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        plot_wavelet_pixels(basis, pixels, save_path=args.output)
        print(f"\n📊 Pixel map saved to: {args.output}")

    print("\n" + "=" * 60)
    print("Validation Complete")
    print("=" * 60)


if __name__ == "__main__":
    main()
