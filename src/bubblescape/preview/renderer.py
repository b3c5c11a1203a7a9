"""
Headless top-down preview renderer.

Rasterizes a FrameState into an RGB frame: the shaded terrain grid, foliage
blades as swaying specks, and bubbles as translucent tinted discs drawn
lowest first. It stands in for the 3D renderer when rendering previews to
video, PNG or the live window.
"""

from dataclasses import dataclass
from typing import Iterator

import numpy as np
from PIL import Image, ImageDraw

from bubblescape.core.capture import FileCapture
from bubblescape.preview.colorgrade import (
    add_glow,
    shade_terrain,
    tone_map_soft,
    vignette,
)
from bubblescape.scene import Environment, FrameState, SceneConfig


@dataclass
class PreviewConfig:
    """Output size and camera framing of the preview."""

    width: int = 1280
    height: int = 720
    fps: int = 60

    view_half_extent: float = 60.0  # World units from centre to left/right edge
    foliage_color: tuple[int, int, int] = (0x4C, 0xA2, 0x3A)
    foliage_stride: int = 1  # Draw every n-th blade
    bubble_alpha: int = 90
    glow_radius: int = 12


class PreviewRenderer:
    """Renders FrameStates of one scene from directly above."""

    def __init__(self, scene: SceneConfig, config: PreviewConfig | None = None):
        self.scene = scene
        self.cfg = config or PreviewConfig()
        self.pixels_per_unit = self.cfg.width / (2.0 * self.cfg.view_half_extent)
        self._terrain_cache: tuple[int, np.ndarray] | None = None

    def world_to_pixel(self, x, z):
        """Map world (x, z) to (column, row) pixel coordinates."""
        col = (np.asarray(x) * self.pixels_per_unit) + self.cfg.width / 2
        row = (np.asarray(z) * self.pixels_per_unit) + self.cfg.height / 2
        return col, row

    def render_frame(self, state: FrameState) -> np.ndarray:
        """
        Args:
            state: Buffers from Environment.tick().

        Returns:
            (H, W, 3) uint8 RGB frame.
        """
        frame = self._terrain_layer(state).copy()
        if state.foliage_matrices is not None:
            self._draw_foliage(frame, state.foliage_matrices)
        frame = self._draw_bubbles(frame, state.bubble_transforms, state.bubble_tints)

        if self.scene.glow_enabled:
            # Louder bass, brighter bloom
            intensity = min(self.scene.glow_intensity * (1.0 + state.bands.bass), 0.8)
            frame = add_glow(frame, intensity=intensity, radius=self.cfg.glow_radius)
        if self.scene.vignette_strength > 0:
            frame = vignette(frame, strength=self.scene.vignette_strength)
        return tone_map_soft(frame)

    def render_environment(self, env: Environment, n_frames: int, fps: int | None = None) -> Iterator[np.ndarray]:
        """Tick ``env`` at a fixed frame rate and yield preview frames."""
        fps = fps or self.cfg.fps
        capture = env.capture
        for i in range(n_frames):
            if isinstance(capture, FileCapture):
                capture.seek(i)
            state = env.tick(frame_time=env.clock.advance(1.0 / fps))
            yield self.render_frame(state)

    def _terrain_layer(self, state: FrameState) -> np.ndarray:
        """Shaded terrain cropped to the view; re-rendered only when the grid changes."""
        cached = self._terrain_cache
        if cached is not None and cached[0] == state.terrain_version:
            return cached[1]

        terrain = self.scene.terrain
        nz, nx = terrain.segments_z + 1, terrain.segments_x + 1
        normals = state.terrain_normals.reshape(nz, nx, 3)
        heights = state.terrain_positions[:, 1].reshape(nz, nx) - terrain.offset
        shaded = shade_terrain(normals, heights, self.scene.terrain_color)

        # Source rectangle of the view in grid pixel coordinates
        half_w = self.cfg.view_half_extent
        half_h = half_w * self.cfg.height / self.cfg.width
        sx = (nx - 1) / terrain.width
        sz = (nz - 1) / terrain.depth
        box = (
            (-half_w + terrain.width / 2) * sx + 0.5,
            (-half_h + terrain.depth / 2) * sz + 0.5,
            (half_w + terrain.width / 2) * sx + 0.5,
            (half_h + terrain.depth / 2) * sz + 0.5,
        )
        img = Image.fromarray(shaded).transform(
            (self.cfg.width, self.cfg.height),
            Image.Transform.EXTENT,
            box,
            resample=Image.Resampling.BILINEAR,
        )
        layer = np.asarray(img)
        self._terrain_cache = (state.terrain_version, layer)
        return layer

    def _draw_foliage(self, frame: np.ndarray, matrices: np.ndarray):
        m = matrices[:: self.cfg.foliage_stride]
        col, row = self.world_to_pixel(m[:, 0, 3], m[:, 2, 3])
        col = col.astype(np.int32)
        row = row.astype(np.int32)
        visible = (col >= 0) & (col < self.cfg.width) & (row >= 0) & (row < self.cfg.height)

        # Tilted blades catch less light; m[:, 2, 1] is sin(sway) * scale
        tilt = np.abs(m[visible, 2, 1]) / np.maximum(m[visible, 1, 1] ** 2 + m[visible, 2, 1] ** 2, 1e-6) ** 0.5
        shade = (1.0 - 0.6 * tilt)[:, np.newaxis]
        color = np.asarray(self.cfg.foliage_color, dtype=np.float32)
        frame[row[visible], col[visible]] = (color * shade).astype(np.uint8)

    def _draw_bubbles(self, frame: np.ndarray, transforms: np.ndarray, tints: np.ndarray) -> np.ndarray:
        if len(transforms) == 0:
            return frame

        base = Image.fromarray(frame).convert("RGBA")
        overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)

        alpha = self.cfg.bubble_alpha
        # Lowest bubbles first so higher ones overlap them
        for i in np.argsort(transforms[:, 1]):
            x, y, z = (float(v) for v in transforms[i, 0:3])
            radius_px = float(transforms[i, 6]) * self.pixels_per_unit * (1.0 + y / 200.0)
            cx, cy = (float(v) for v in self.world_to_pixel(x, z))
            r, g, b = (int(c) for c in tints[i])
            bbox = (cx - radius_px, cy - radius_px, cx + radius_px, cy + radius_px)
            draw.ellipse(bbox, fill=(r, g, b, alpha), outline=(r, g, b, min(alpha * 2, 255)))

            # Specular highlight
            hr = radius_px * 0.25
            hx, hy = cx - radius_px * 0.35, cy - radius_px * 0.35
            draw.ellipse((hx - hr, hy - hr, hx + hr, hy + hr), fill=(255, 255, 255, min(alpha * 2, 255)))

        return np.asarray(Image.alpha_composite(base, overlay).convert("RGB"))
