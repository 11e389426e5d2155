"""
Flyer Canvas - Scene Persistence Service

This module saves and loads scenes as JSON documents.
Separates file operations from the model and UI logic.

Document layout:
    {
        "format_version": 1,
        "canvas": {"width": 1080, "height": 1350, "background": [0, 0, 0, 255]},
        "duration": null,
        "layers": [            # bottom to top
            {"id": ..., "name": ..., "visible": true,
             "content": {"kind": "image", "asset_ref": ..., ...},
             "transform": {"x": ..., "y": ..., "scale_x": ..., ...},
             "keyframes": [{"time": 0.0, "dx": ..., ...}, ...],
             "start": 0.0, "duration": null,
             "effects": {"brightness": 1.0, "contrast": 1.0, "saturation": 1.0, "blur": 0.0}}
        ],
        "selection": [...]
    }
"""

import json
import logging
from dataclasses import asdict
from typing import Any, Dict

from flyer_canvas.constants import SCENE_FORMAT_VERSION
from flyer_canvas.errors import CanvasError
from flyer_canvas.models.content import CONTENT_TYPES, ContentKind
from flyer_canvas.models.layer import Effects, Keyframe, Layer
from flyer_canvas.models.scene import Scene
from flyer_canvas.models.transform import Transform
from flyer_canvas.utils.logger import loggerRaise

logger = logging.getLogger(__name__)


def _content_to_dict(content) -> Dict[str, Any]:
    data = {'kind': content.kind.value}
    data.update(asdict(content))
    if 'color' in data:
        data['color'] = list(data['color'])
    return data


def _content_from_dict(data: Dict[str, Any]):
    fields = dict(data)
    kind = ContentKind(fields.pop('kind'))
    return CONTENT_TYPES[kind](**fields)


def layer_to_dict(layer: Layer) -> Dict[str, Any]:
    return {
        'id': layer.id,
        'name': layer.name,
        'visible': layer.visible,
        'content': _content_to_dict(layer.content),
        'transform': asdict(layer.transform),
        'keyframes': [asdict(k) for k in layer.keyframes],
        'start': layer.start,
        'duration': layer.duration,
        'effects': asdict(layer.effects),
    }


def layer_from_dict(data: Dict[str, Any]) -> Layer:
    return Layer(
        content=_content_from_dict(data['content']),
        transform=Transform(**data.get('transform', {})),
        visible=bool(data.get('visible', True)),
        keyframes=tuple(Keyframe(**k) for k in data.get('keyframes', [])),
        name=data.get('name', ''),
        start=data.get('start', 0.0),
        duration=data.get('duration'),
        effects=Effects(**data.get('effects', {})),
        id=data['id'],
    )


def scene_to_dict(scene: Scene) -> Dict[str, Any]:
    """Build the JSON-ready document for a scene

    Args:
        scene: Scene to serialize

    Returns:
        Dictionary in the scene document layout
    """
    return {
        'format_version': SCENE_FORMAT_VERSION,
        'canvas': {
            'width': scene.width,
            'height': scene.height,
            'background': list(scene.background),
        },
        'duration': scene.duration,
        'layers': [layer_to_dict(layer) for layer in scene.layers],
        # Sorted for stable output
        'selection': sorted(scene.selection),
    }


def scene_from_dict(data: Dict[str, Any]) -> Scene:
    """Rebuild a scene from a document

    Raises:
        ValueError: Unsupported format version, malformed document or
            invalid geometry (empty canvas, empty content box, bad window)
    """
    if not isinstance(data, dict):
        raise ValueError("Scene document must be a JSON object")
    version = data.get('format_version')
    if version != SCENE_FORMAT_VERSION:
        raise ValueError(f"Unsupported scene format version: {version}")

    try:
        canvas = data['canvas']
        layers = tuple(layer_from_dict(item) for item in data.get('layers', []))
        return Scene(
            width=canvas['width'],
            height=canvas['height'],
            background=tuple(canvas.get('background', (0, 0, 0, 255))),
            layers=layers,
            selection=frozenset(data.get('selection', [])),
            duration=data.get('duration'),
        )
    except (KeyError, TypeError, CanvasError) as e:
        raise ValueError(f"Malformed scene document: {e!r}") from e


def save_scene(scene: Scene, filename):
    """Save a scene to a JSON file

    Args:
        scene: Scene to save
        filename: Path to save file

    Raises:
        OSError: If file write fails
    """
    try:
        with open(filename, 'w', encoding='utf-8') as f:
            json.dump(scene_to_dict(scene), f, indent=2)
    except OSError as e:
        loggerRaise(e, f"Could not save scene to {filename}")
    logger.info("Scene saved to %s (%d layers)", filename, len(scene))


def load_scene(filename) -> Scene:
    """Load and parse a scene from a JSON file

    Args:
        filename: Path to scene file

    Returns:
        Scene

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a valid scene document
    """
    try:
        with open(filename, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        loggerRaise(e, f"Could not open scene {filename}")
    except json.JSONDecodeError as e:
        loggerRaise(ValueError(f"{filename} is not valid JSON: {e}"), f"Could not read scene {filename}")

    scene = scene_from_dict(data)
    logger.info("Scene loaded from %s (%d layers)", filename, len(scene))
    return scene
