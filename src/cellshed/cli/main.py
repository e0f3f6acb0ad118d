"""Command line interface for cellshed."""

import logging
from dataclasses import replace
from pathlib import Path

import typer

app = typer.Typer(help="cellshed: watershed-based cell detection with region consolidation")


def _setup_logging(debug: bool) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s - %(name)s - %(message)s")


@app.command()
def segment(
    image: str = typer.Option(..., "--image", "-i", help="Preprocessed image (TIFF)"),
    feature: str | None = typer.Option(None, "--feature", "-f", help="Cell feature image (TIFF); default: LoG of the image"),
    output: str = typer.Option("./output_boundingboxes.h5", "--output", "-o", help="Output H5 file path"),
    config: str | None = typer.Option(None, "--config", "-c", help="YAML file with segmentation options"),
    min_area: float | None = typer.Option(None, "--min-area", help="Minimum cell area in pixels"),
    max_area: float | None = typer.Option(None, "--max-area", help="Maximum cell area in pixels (default: 1/4 of the image)"),
    merge_ratio: float | None = typer.Option(None, "--merge-ratio", help="Box intersection ratio that triggers a merge"),
    merge: bool | None = typer.Option(None, "--merge/--no-merge", help="Merge overlapping fragments"),
    filter_small: bool | None = typer.Option(None, "--filter-small/--no-filter-small", help="Drop small regions after merging"),
    show: bool | None = typer.Option(None, "--show/--no-show", help="Render intermediate results"),
    figures_dir: str | None = typer.Option(None, "--figures-dir", help="Save rendered figures here instead of showing them"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Detect cells and save their bounding boxes.

    Writes the H5 record plus ``<output>.csv`` and ``<output>-rgb-labels.png``.
    """
    _setup_logging(debug)

    from ..core.config import SegmentationOptions, load_options
    from ..core.errors import ConfigurationError
    from ..core.io import (
        load_image,
        rgb_labels_path,
        save_detections_csv,
        save_detections_hdf5,
        save_rgb_labels,
    )
    from ..core.pipeline import WatershedDetector

    overrides = {
        "min_cell_area": min_area,
        "max_cell_area": max_area,
        "merge_intersection_ratio": merge_ratio,
        "merge_regions": merge,
        "filter_small_regions": filter_small,
        "show_intermediate_results": show,
    }
    try:
        options = load_options(config) if config else SegmentationOptions()
        options = replace(options, **{k: v for k, v in overrides.items() if v is not None})
        detector = WatershedDetector(options)
    except (ConfigurationError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    image_data = load_image(image)
    feature_data = load_image(feature) if feature else None

    record = detector.detect(image_data, feature_data)
    typer.echo(f"Detected {record.n_detections} cells from {record.n_regions} watershed regions")

    if options.save_results:
        output_path = save_detections_hdf5(record, output, options=options)
        csv_path = save_detections_csv(record, output_path.with_suffix(".csv"))
        png_path = save_rgb_labels(record.label_image, rgb_labels_path(output_path))
        typer.echo(f"Saved to: {output_path}, {csv_path}, {png_path}")

    if options.show_intermediate_results:
        import matplotlib.pyplot as plt

        from ..core.visualization import plot_detections, plot_marker_stages, save_figures

        figures = {"detections": plot_detections(image_data, record)}
        if detector.markers is not None:
            figures["markers"] = plot_marker_stages(detector.markers)

        if figures_dir:
            paths = save_figures(figures, figures_dir)
            typer.echo(f"Saved {len(paths)} figures to {figures_dir}")
            for fig in figures.values():
                plt.close(fig)
        else:
            plt.show()


@app.command()
def config(
    output: str = typer.Option("./cellshed.yaml", "--output", "-o", help="Output YAML file path"),
):
    """Write the default segmentation options to a YAML file."""
    from ..core.config import SegmentationOptions, save_options

    path = save_options(SegmentationOptions(), Path(output))
    typer.echo(f"Saved default options to: {path}")


def main():
    app()


if __name__ == "__main__":
    main()
