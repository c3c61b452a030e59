"""
BAM filter pipeline: command-line entry point.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

import click
import numpy as np

from . import __version__
from .core import BamFilterError, ConversionSettings, TargetVersion
from .core.pixels import to_argb_plane, unpack_argb
from .logconf import setup_logging
from .oiio import OiioAdapter
from .processing import FilterPipeline, create_filter, get_all_categories, get_filters_by_category
from .services import FrameLoader, PipelineSerializer, Settings

logger = logging.getLogger(__name__)


def _build_pipeline(pipeline_file: Optional[Path], filter_specs: Tuple[str, ...]) -> FilterPipeline:
    """Pipeline from an optional JSON file plus ``KIND=CONFIG`` entries."""
    if pipeline_file:
        pipeline = PipelineSerializer.load_from_file(pipeline_file)
    else:
        pipeline = FilterPipeline()

    for entry in filter_specs:
        kind, _, config = entry.partition("=")
        filter_obj = create_filter(kind)
        if filter_obj is None:
            raise click.BadParameter(f"Unknown filter kind: {kind}", param_hint="--filter")
        if config and not filter_obj.set_configuration(config):
            raise click.BadParameter(f"Invalid configuration for {kind}: {config}", param_hint="--filter")
        if not pipeline.add_filter(filter_obj):
            raise click.BadParameter(f"Output filter {kind} is already set", param_hint="--filter")
    return pipeline


@click.group()
@click.version_option(version=__version__, prog_name="bamfilter")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              default=None, help="Logging level (default: from settings.ini)")
@click.pass_context
def main(ctx: click.Context, log_level: Optional[str]) -> None:
    """Filter pipeline for BAM sprite frame sets."""
    settings = Settings()
    log_file = setup_logging(log_level or settings.get_log_level(), settings.SETTINGS_FILE.parent / "logs")
    logger.debug("OpenImageIO %s, log file %s", OiioAdapter.get_oiio_version(), log_file)
    ctx.obj = settings


@main.command()
def filters() -> None:
    """List the available filters and their default configuration."""
    for category in get_all_categories():
        click.echo(f"{category.name.title()}:")
        for f in get_filters_by_category(category):
            config = f.get_configuration()
            click.echo(f"  {f.kind.value:<16} {f.name:<28} {config}")


@main.command()
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False, path_type=Path),
              help="Output file; multi-file outputs derive their names from it")
@click.option("--pipeline", "pipeline_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Pipeline JSON file")
@click.option("--filter", "filter_specs", multiple=True, metavar="KIND=CONFIG",
              help="Append a filter, e.g. --filter balance=50;0;0;[]")
@click.option("--target", type=click.Choice(["legacy", "truecolor"], case_sensitive=False), default=None,
              help="Target version (default: from settings.ini)")
@click.option("--indexed", is_flag=True, help="Load input images as palette-indexed frames")
@click.pass_obj
def convert(
    settings: Settings,
    inputs: Tuple[Path, ...],
    output: Path,
    pipeline_file: Optional[Path],
    filter_specs: Tuple[str, ...],
    target: Optional[str],
    indexed: bool,
) -> None:
    """Run the filter pipeline over INPUTS and write the output.

    Container encoders are not bundled; use an image or GIF output filter
    (e.g. --filter output_image) to write files from the command line.
    """
    pipeline = _build_pipeline(pipeline_file, filter_specs)
    loader = FrameLoader(indexed=indexed)
    try:
        frame_set = loader.load_images(list(inputs))
    except BamFilterError as e:
        raise click.ClickException(str(e))

    conversion = ConversionSettings(
        target=TargetVersion[target.upper()] if target else settings.get_target(),
        output_path=output,
        rle_index=settings.get_rle_index(),
        compressed=settings.get_compressed(),
        dxt_type=settings.get_dxt_type(),
        tile_index=settings.get_tile_index(),
        frame_set_loader=loader.load,
    )

    def _progress(percent: int, message: str) -> None:
        click.echo(f"[{percent:3d}%] {message}")

    result = pipeline.convert(frame_set, conversion, progress=_progress)
    for item in result.files:
        status = "ok" if item.success else f"FAILED ({item.error})"
        click.echo(f"  {item.path}: {status}")
    settings.set_output_dir(str(output.resolve().parent))
    if not result.success:
        raise click.ClickException(result.message)
    click.echo(result.message)


@main.command()
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False, path_type=Path),
              help="Preview image (PNG)")
@click.option("--frame", "frame_index", type=int, default=0, show_default=True, help="Frame to render")
@click.option("--pipeline", "pipeline_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Pipeline JSON file")
@click.option("--filter", "filter_specs", multiple=True, metavar="KIND=CONFIG", help="Append a filter")
@click.option("--indexed", is_flag=True, help="Load input images as palette-indexed frames")
@click.pass_obj
def preview(
    settings: Settings,
    inputs: Tuple[Path, ...],
    output: Path,
    frame_index: int,
    pipeline_file: Optional[Path],
    filter_specs: Tuple[str, ...],
    indexed: bool,
) -> None:
    """Render one frame of INPUTS through the color and transform filters."""
    pipeline = _build_pipeline(pipeline_file, filter_specs)
    try:
        frame_set = FrameLoader(indexed=indexed).load_images(list(inputs))
        conversion = ConversionSettings(target=settings.get_target(), output_path=output)
        frame = pipeline.preview(frame_set, conversion, frame_index)
        a, r, g, b = unpack_argb(to_argb_plane(frame))
        OiioAdapter.write_image(output, np.stack([r, g, b, a], axis=-1).astype(np.uint8))
    except BamFilterError as e:
        raise click.ClickException(str(e))
    click.echo(f"Wrote preview of frame {pipeline.preview_frame} ({frame.width}x{frame.height}) to {output}")


if __name__ == "__main__":
    main()
