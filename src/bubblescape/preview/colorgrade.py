"""
Shading and post-processing for preview frames.

Lambert shading of the terrain from its normals, bloom, vignette and a
soft-knee highlight rolloff.
"""

import functools

import numpy as np
from PIL import Image, ImageFilter


def shade_terrain(
    normals: np.ndarray,
    heights: np.ndarray,
    base_color: tuple[int, int, int],
    light_dir: tuple[float, float, float] = (-0.5, 0.8, -0.3),
    ambient: float = 0.35,
    height_range: float | None = None,
) -> np.ndarray:
    """
    Lambert-shade a height grid.

    Args:
        normals: (H, W, 3) unit normals.
        heights: (H, W) heights, used for a subtle elevation tint.
        base_color: Surface RGB (0-255).
        light_dir: Direction toward the light (normalized internally).
        ambient: Light level of surfaces facing away from the light.
        height_range: Heights at +-height_range map to the tint extremes;
            the grid's own extent if None.

    Returns:
        (H, W, 3) uint8 RGB array.
    """
    light = np.asarray(light_dir, dtype=np.float32)
    light /= np.linalg.norm(light)

    diffuse = np.clip(normals @ light, 0.0, 1.0)
    lit = ambient + (1.0 - ambient) * diffuse

    span = height_range or float(np.abs(heights).max()) or 1.0
    elevation = np.clip(heights / span, -1.0, 1.0)
    # Valleys slightly darker, ridges slightly brighter
    lit = lit * (0.85 + 0.15 * elevation)

    color = np.asarray(base_color, dtype=np.float32) / 255.0
    rgb = lit[..., np.newaxis] * color * 1.6
    return (np.clip(rgb, 0.0, 1.0) * 255).astype(np.uint8)


@functools.lru_cache(maxsize=8)
def _tone_curve(shoulder: float) -> np.ndarray:
    """256-entry lookup table: identity below the shoulder, Reinhard knee above."""
    levels = np.arange(256, dtype=np.float32)
    threshold = shoulder * 255.0
    headroom = 255.0 - threshold
    excess = np.maximum(levels - threshold, 0.0)
    curve = np.where(levels > threshold, threshold + excess * headroom / (excess + headroom), levels)
    return curve.astype(np.uint8)


def tone_map_soft(frame: np.ndarray, shoulder: float = 0.78) -> np.ndarray:
    """
    Roll highlights above ``shoulder`` (fraction of 255) off toward 255
    instead of clipping; darker levels pass through.
    """
    return _tone_curve(float(shoulder))[frame]


def add_glow(frame: np.ndarray, intensity: float = 0.3, radius: int = 15) -> np.ndarray:
    """
    Bloom: screen-blend a blurred copy over the frame.

    Args:
        frame: (H, W, 3) uint8 RGB array.
        intensity: Opacity of the blurred copy (0-1).
        radius: Gaussian blur radius in pixels.
    """
    if intensity <= 0:
        return frame

    halo = np.asarray(Image.fromarray(frame).filter(ImageFilter.GaussianBlur(radius=radius)), dtype=np.float32)
    base = frame.astype(np.float32) / 255.0
    halo *= intensity / 255.0
    return ((1.0 - (1.0 - base) * (1.0 - halo)) * 255).astype(np.uint8)


@functools.lru_cache(maxsize=4)
def _vignette_mask(height: int, width: int, strength: float) -> np.ndarray:
    rows, cols = np.ogrid[:height, :width]
    dy = rows - height / 2
    dx = cols - width / 2
    r = np.hypot(dx, dy) / np.hypot(width / 2, height / 2)
    falloff = 1.0 - np.clip(r * strength, 0.0, 1.0) ** 2
    return falloff.astype(np.float32)[:, :, np.newaxis]


def vignette(frame: np.ndarray, strength: float = 0.4) -> np.ndarray:
    """Radial darkening toward the corners (0 = none, 1 = black corners)."""
    if strength <= 0:
        return frame
    h, w = frame.shape[:2]
    return (frame * _vignette_mask(h, w, float(strength))).astype(np.uint8)
