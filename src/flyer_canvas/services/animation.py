"""Keyframe evaluation for animated layers.

A layer's transform at time t is its base transform combined with the
keyframe delta at t. Between two keyframes the delta is interpolated
linearly (position, scale, opacity) and along the shortest arc (rotation).
Before the first keyframe and after the last the delta holds at that
keyframe's value.
"""

from bisect import bisect_right
from dataclasses import replace
from typing import Dict, Optional, Sequence

from flyer_canvas.models.layer import Keyframe, Layer
from flyer_canvas.models.scene import Scene
from flyer_canvas.models.transform import Transform
from flyer_canvas.utils.transform_math import lerp, shortest_angle_delta


def keyframe_at(keyframes: Sequence[Keyframe], t: float) -> Optional[Keyframe]:
    """Interpolated keyframe delta at time t

    Args:
        keyframes: Keyframes sorted by time
        t: Time in seconds

    Returns:
        Keyframe holding the delta at t, or None when there are no keyframes
    """
    if not keyframes:
        return None
    first = keyframes[0]
    last = keyframes[-1]
    if t <= first.time:
        return replace(first, time=t)
    if t >= last.time:
        return replace(last, time=t)

    times = [k.time for k in keyframes]
    i = bisect_right(times, t)
    a = keyframes[i - 1]
    b = keyframes[i]
    span = b.time - a.time
    if span <= 0:
        return replace(b, time=t)
    f = (t - a.time) / span

    return Keyframe(
        time=t,
        dx=lerp(a.dx, b.dx, f),
        dy=lerp(a.dy, b.dy, f),
        scale_x=lerp(a.scale_x, b.scale_x, f),
        scale_y=lerp(a.scale_y, b.scale_y, f),
        rotation=a.rotation + shortest_angle_delta(a.rotation, b.rotation) * f,
        opacity=lerp(a.opacity, b.opacity, f),
    )


def apply_keyframe(base: Transform, delta: Keyframe) -> Transform:
    return Transform(
        x=base.x + delta.dx,
        y=base.y + delta.dy,
        scale_x=base.scale_x * delta.scale_x,
        scale_y=base.scale_y * delta.scale_y,
        rotation=base.rotation + delta.rotation,
        opacity=base.opacity * delta.opacity,
    )


def transform_at(layer: Layer, t: Optional[float]) -> Transform:
    """Effective transform of a layer at time t (base transform if static or t is None)"""
    if t is None or not layer.keyframes:
        return layer.transform
    return apply_keyframe(layer.transform, keyframe_at(layer.keyframes, t))


def transforms_at(scene: Scene, t: Optional[float]) -> Dict[str, Transform]:
    return {layer.id: transform_at(layer, t) for layer in scene.layers}


def scene_at(scene: Scene, t: Optional[float]) -> Scene:
    """Static copy of the scene frozen at time t

    Keyframes and time windows are dropped; layers off screen at t come back
    hidden.
    """
    if t is None or not scene.is_animated:
        return scene
    layers = tuple(
        replace(layer, transform=transform_at(layer, t), keyframes=(),
                visible=layer.visible and layer.active_at(t), start=0.0, duration=None)
        for layer in scene.layers
    )
    return replace(scene, layers=layers)


def timeline_duration(scene: Scene) -> float:
    """Length of the scene timeline in seconds

    The scene's explicit duration wins; otherwise the latest of the last
    keyframe times and the ends of bounded layer windows. A static scene has
    duration 0.
    """
    if scene.duration is not None:
        return scene.duration
    ends = [layer.keyframes[-1].time for layer in scene.layers if layer.keyframes]
    ends.extend(layer.end for layer in scene.layers if layer.end is not None)
    return max(ends) if ends else 0.0
