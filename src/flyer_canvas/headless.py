"""Headless scene exporter - CLI entry point.

Reads a saved scene document (JSON), renders it across a time range and
writes an animated GIF or a zip of PNG frames. Same render path as the
editor's export, without any UI.

Usage:
    python -m flyer_canvas.headless <scene.json> -o OUTPUT [options]

Examples:
    python -m flyer_canvas.headless flyer.json -o flyer.gif
    python -m flyer_canvas.headless flyer.json -o flyer.gif --fps 24 --start 0 --end 3
    python -m flyer_canvas.headless flyer.json -o frames.zip --format png-zip --size 540x675
    python -m flyer_canvas.headless flyer.json -o flyer.gif --assets ./media
"""

import sys
import os
import argparse
import logging

from PIL import Image, UnidentifiedImageError

from flyer_canvas.config import EngineConfig
from flyer_canvas.errors import BusyExportingError
from flyer_canvas.services.encoders import ENCODERS, create_encoder
from flyer_canvas.services.export_pipeline import ExportPipeline, ExportStatus, TimeRange
from flyer_canvas.services.animation import timeline_duration
from flyer_canvas.services.renderer import Renderer
from flyer_canvas.services.serialization import load_scene
from flyer_canvas.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def directory_resolver(root: str):
    """Asset resolver reading asset refs as paths relative to a directory.

    Missing or unreadable files resolve to None (rendered as placeholders).
    """
    root = os.path.abspath(root)

    def resolve(asset_ref: str):
        path = os.path.join(root, asset_ref)
        if not os.path.isfile(path):
            logger.warning("Asset not found: %s", path)
            return None
        try:
            with Image.open(path) as img:
                img.load()
                return img.copy()
        except (OSError, UnidentifiedImageError) as e:
            logger.warning("Could not read asset %s: %s", path, e)
            return None

    return resolve


def _parse_size(value: str):
    """'480x270' -> (480, 270)"""
    try:
        width, height = (int(part) for part in value.lower().split('x'))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Size must look like WIDTHxHEIGHT, got '{value}'")
    if width < 1 or height < 1:
        raise argparse.ArgumentTypeError(f"Size must be positive, got '{value}'")
    return width, height


def build_parser():
    parser = argparse.ArgumentParser(
        description='Render a saved flyer scene to an animated GIF or PNG frames (headless).',
    )
    parser.add_argument(
        'scene_file',
        help='Path to a scene document (.json).',
    )
    parser.add_argument(
        '-o', '--output',
        required=True,
        help='Output file path.',
    )
    parser.add_argument(
        '--format',
        choices=sorted(ENCODERS),
        default='gif',
        help='Output format (default: gif).',
    )
    parser.add_argument(
        '--fps',
        type=float,
        default=None,
        help='Frames per second (default: from config, 15).',
    )
    parser.add_argument(
        '--start',
        type=float,
        default=0.0,
        help='Start time in seconds (default: 0).',
    )
    parser.add_argument(
        '--end',
        type=float,
        default=None,
        help='End time in seconds, exclusive (default: scene timeline length).',
    )
    parser.add_argument(
        '--size',
        type=_parse_size,
        default=None,
        help='Output size WIDTHxHEIGHT (default: canvas size).',
    )
    parser.add_argument(
        '--assets',
        default=None,
        help='Directory that asset references are resolved against.',
    )
    parser.add_argument(
        '--font',
        default=None,
        help='TrueType font for text layers.',
    )
    parser.add_argument(
        '--config',
        default=None,
        help='Engine config JSON file.',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging.',
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    # Logging
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    scene_path = os.path.abspath(args.scene_file)
    if not os.path.isfile(scene_path):
        print(f"Error: Scene file not found: {scene_path}", file=sys.stderr)
        return 1

    config = EngineConfig.load(args.config) if args.config else EngineConfig()

    try:
        scene = load_scene(scene_path)
    except (OSError, ValueError) as e:
        print(f"Error: Could not load scene: {e}", file=sys.stderr)
        return 1

    end = args.end if args.end is not None else max(args.start, timeline_duration(scene))
    try:
        time_range = TimeRange(args.start, end)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    resolver = directory_resolver(args.assets) if args.assets else None
    pipeline = ExportPipeline(Renderer(resolver, args.font), config=config)

    def report(job):
        if args.verbose:
            print(f"  frame {job.frames_produced}/{job.total_frames}")

    print(f"Exporting {scene_path} ...")
    try:
        job = pipeline.start_export(scene, time_range, args.fps, create_encoder(args.format),
                                    args.size, on_progress=report)
    except (ValueError, BusyExportingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if job.status is not ExportStatus.COMPLETED:
        print(f"Error: Export {job.status.value}: {job.error}", file=sys.stderr)
        return 1

    output_path = os.path.abspath(args.output)
    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    with open(output_path, 'wb') as f:
        f.write(job.result)

    print(f"Wrote {job.total_frames} frame(s) to {output_path} ({len(job.result)} bytes)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
