"""
PatlakPET CLI

Command-line interface for Patlak parametric mapping of dynamic PET.
Uses Click for argument parsing and orchestrates library components.
"""

import logging
from pathlib import Path

import click
import torch

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def get_device(force_cpu: bool = False) -> torch.device:
    """
    Determine the device to use for computation.

    Args:
        force_cpu: If True, force CPU usage even if CUDA available

    Returns:
        torch.device (cuda or cpu)
    """
    if force_cpu:
        logger.info("Forcing CPU usage.")
        return torch.device('cpu')
    elif torch.cuda.is_available():
        logger.info("CUDA is available. Using GPU.")
        return torch.device('cuda')
    else:
        logger.info("CUDA not available. Using CPU.")
        return torch.device('cpu')


@click.group()
@click.version_option(version="0.1.0")
@click.option('--verbose', '-v', is_flag=True, default=False,
              help='Log per-frame details')
def cli(verbose):
    """
    PatlakPET: Patlak linear-fit kinetic modelling of dynamic PET images.

    Turns a dynamic image series and a plasma input function into slope
    and intercept parametric maps.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.argument('dynamic_image', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('plasma_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--frames', 'frames_path', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Frame timing sidecar (JSON). Default: image name with .json')
@click.option('--time-shift', type=float, default=13.0,
              help='Input function time shift in seconds')
@click.option('--blood-volume', type=float, default=0.05,
              help='Blood volume fraction (bv)')
@click.option('--starting-frame', type=int, default=None,
              help='First frame of the fit (default: the last 13 frames)')
@click.option('--decay-corrected', is_flag=True, default=False,
              help='Image and plasma data are already decay corrected')
@click.option('--calibrated/--uncalibrated', default=True,
              help='Whether the image is calibrated (uncalibrated input is rejected)')
@click.option('--half-life', type=float, default=None,
              help='Isotope half-life in seconds (default: F-18)')
@click.option('--output-dir', type=click.Path(file_okay=False, path_type=Path), default=None,
              help='Output directory (default: next to the input image)')
@click.option('--batch-size', type=int, default=262144,
              help='Voxels per regression batch')
@click.option('--cpu', is_flag=True, default=False,
              help='Force CPU usage (default: auto-detect GPU)')
@click.pass_context
def fit(ctx, dynamic_image, plasma_file, frames_path, time_shift, blood_volume, starting_frame,
        decay_corrected, calibrated, half_life, output_dir, batch_size, cpu):
    """Apply the Patlak linear fit to a dynamic image."""
    from patlakpet.kinetics.config import PatlakConfig, FDG_HALF_LIFE
    from patlakpet.logic.contracts import PatlakRequest
    from patlakpet.logic.orchestrators import run_patlak_analysis, save_patlak_result

    try:
        config = PatlakConfig(
            time_shift=time_shift,
            blood_volume_fraction=blood_volume,
            starting_frame=starting_frame,
            is_decay_corrected=decay_corrected,
            is_calibrated=calibrated,
            half_life=half_life if half_life is not None else FDG_HALF_LIFE,
            batch_size=batch_size,
        )
    except ValueError as err:
        raise click.BadParameter(str(err))

    request = PatlakRequest(
        dynamic_image_path=dynamic_image,
        plasma_path=plasma_file,
        frame_definitions_path=frames_path,
    )

    device = get_device(force_cpu=cpu)

    try:
        result = run_patlak_analysis(request, config, device)
    except (ValueError, KeyError, TypeError, FileNotFoundError) as err:
        raise click.ClickException(str(err))
    except RuntimeError as err:
        # SimpleITK reports unreadable images as RuntimeError
        raise click.ClickException(f"Cannot read {dynamic_image}: {err}")

    if not save_patlak_result(result, output_dir=output_dir):
        logger.error("Writing the parametric images failed")
        ctx.exit(1)


@cli.command()
@click.argument('image', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--frame', type=int, default=None,
              help='1-based frame to show for 4D images (default: last)')
@click.option('--planes', type=str, default=None,
              help='Comma-separated plane indices (e.g., "2,5,8"). Default: all planes.')
@click.option('--max', 'maxi', type=float, default=0.0,
              help='Value at the top of a shared colour scale (0: scale planes independently)')
@click.option('--zoom', type=int, default=0,
              help='Enlargement factor (0: largest that fits)')
@click.option('--title', type=str, default=None,
              help='Figure title')
@click.option('--output', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Save the figure (e.g. PNG) instead of opening a window')
def show(image, frame, planes, maxi, zoom, title, output):
    """Display the planes of a 3D image or of one frame of a 4D image."""
    import matplotlib.pyplot as plt
    import SimpleITK as sitk

    from patlakpet.utilities.display import display_stack

    try:
        volume = sitk.GetArrayFromImage(sitk.ReadImage(str(image), sitk.sitkFloat64))
    except RuntimeError as err:
        raise click.ClickException(f"Cannot read {image}: {err}")

    if volume.ndim == 4:
        frame_num = frame if frame is not None else volume.shape[0]
        if not 1 <= frame_num <= volume.shape[0]:
            raise click.BadParameter(
                f"frame must be in 1..{volume.shape[0]}", param_hint='--frame'
            )
        volume = volume[frame_num - 1]
    elif volume.ndim == 2:
        volume = volume[None]

    plane_indices = list(range(volume.shape[0]))
    if planes:
        try:
            plane_indices = [int(p.strip()) for p in planes.split(',')]
        except ValueError:
            raise click.BadParameter(
                f"expected comma-separated integers, got {planes!r}", param_hint='--planes'
            )
        bad = [p for p in plane_indices if not 0 <= p < volume.shape[0]]
        if bad:
            raise click.BadParameter(
                f"plane indices {bad} outside 0..{volume.shape[0] - 1}", param_hint='--planes'
            )

    try:
        fig = display_stack(
            volume[plane_indices],
            text=[f"plane {p}" for p in plane_indices],
            maxi=maxi,
            title=title if title is not None else image.name,
            zoom=zoom,
        )
    except ValueError as err:
        raise click.ClickException(str(err))

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output)
        logger.info(f"Figure saved to: {output}")
        plt.close(fig)
    else:
        plt.show()


if __name__ == '__main__':
    cli()
