#!/usr/bin/env python3
"""
Apply the Patlak Linear Fit to a Dynamic Image

Standalone argparse front end to the same orchestrators the `patlakpet fit`
command uses.

Orchestrator Responsibilities:
- Load frame timing, plasma samples and the dynamic image
- Calibration and decay correction
- Frame integration of the input function
- Voxel-wise Patlak regression
- Save slope / y_intersection images and the RoI .tac report

Usage:
    python apply_patlak_on_images.py dynamic.nii plasma.txt \
        --time-shift 13 \
        --blood-volume 0.05 \
        --starting-frame 16

Output:
    slope_dynamic.nii, y_intersection_dynamic.nii and dynamic.tac next to
    the input image.
"""

import argparse
import logging
import sys
from pathlib import Path

import torch

from patlakpet.kinetics.config import PatlakConfig, FDG_HALF_LIFE
from patlakpet.logic.contracts import PatlakRequest
from patlakpet.logic.orchestrators import run_patlak_analysis, save_patlak_result

# Setup logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("ApplyPatlak")


def main(args: argparse.Namespace) -> int:
    """Main Patlak orchestrator."""

    device = torch.device('cuda' if torch.cuda.is_available() else 'cpu')

    config = PatlakConfig(
        time_shift=args.time_shift,
        blood_volume_fraction=args.blood_volume,
        starting_frame=args.starting_frame,
        is_decay_corrected=args.decay_corrected,
        is_calibrated=not args.uncalibrated,
        half_life=args.half_life,
    )

    request = PatlakRequest(
        dynamic_image_path=args.dynamic_image,
        plasma_path=args.plasma_file,
        frame_definitions_path=args.frames,
    )

    result = run_patlak_analysis(request, config, device)
    success = save_patlak_result(result, output_dir=args.output_dir)

    logger.info("=" * 60)
    logger.info("PATLAK FIT COMPLETE" if success else "PATLAK FIT FAILED TO WRITE OUTPUT")
    logger.info("=" * 60)

    return 0 if success else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Apply the Patlak linear fit using dynamic images",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("dynamic_image", type=Path, help="4D dynamic image")
    parser.add_argument("plasma_file", type=Path, help="Plasma samples (time plasma blood)")

    parser.add_argument("--frames", type=Path, default=None,
                        help="Frame timing sidecar (default: image name with .json)")
    parser.add_argument("--time-shift", type=float, default=13.0,
                        help="Input function time shift in seconds")
    parser.add_argument("--blood-volume", type=float, default=0.05,
                        help="Blood volume fraction")
    parser.add_argument("--starting-frame", type=int, default=None,
                        help="First frame of the fit (default: take the last 13 frames)")
    parser.add_argument("--decay-corrected", action="store_true",
                        help="Image and plasma data are already decay corrected")
    parser.add_argument("--uncalibrated", action="store_true",
                        help="Declare the image uncalibrated (rejected)")
    parser.add_argument("--half-life", type=float, default=FDG_HALF_LIFE,
                        help="Isotope half-life in seconds")
    parser.add_argument("--output-dir", type=Path, default=None,
                        help="Output directory (default: next to the input image)")

    args = parser.parse_args()
    sys.exit(main(args))
