"""
Scene composition.

One core, five looks: every scene variant is a SceneConfig preset layered
over the same noise field, terrain driver, bubble simulator and foliage
field. The Environment builds those components and runs them in a fixed
order once per frame:

    spectrum.sample() -> terrain.update(bands) -> bubbles.update(time) -> foliage.update(time)
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Set

import numpy as np

from bubblescape.core.bubbles import BubbleConfig, BubbleSimulator
from bubblescape.core.capture import CaptureSource
from bubblescape.core.clock import FrameClock, FrameTime
from bubblescape.core.foliage import FoliageConfig, FoliageField
from bubblescape.core.noise_field import NoiseConfig, NoiseField
from bubblescape.core.spectrum import SILENCE, BandEnergies, SpectrumExtractor
from bubblescape.core.terrain import GainTable, TerrainConfig, TerrainDriver
from bubblescape.errors import ConfigurationError

logger = logging.getLogger(__name__)

INTENSITY_STEP = 0.1


@dataclass
class SceneSettings:
    """Live-tunable settings (the debug panel). Not persisted."""

    audio_intensity: float = 1.0
    paused: bool = False


@dataclass
class InputState:
    """
    Keyboard/mouse state for one frame.

    ``pressed`` holds keys that went down this frame and is consumed by
    ``apply_input``. ``held`` and the mouse deltas are not read by the scene;
    they are collected for the external camera layer (fly controls), and the
    deltas are cleared by ``end_frame``.
    """

    pressed: Set[str] = field(default_factory=set)
    held: Set[str] = field(default_factory=set)
    mouse_dx: float = 0.0
    mouse_dy: float = 0.0
    quit_requested: bool = False

    def end_frame(self):
        self.pressed.clear()
        self.mouse_dx = 0.0
        self.mouse_dy = 0.0


def apply_input(settings: SceneSettings, input_state: InputState) -> SceneSettings:
    """Fold this frame's key presses into the settings."""
    pressed = input_state.pressed
    if "plus" in pressed:
        settings.audio_intensity = round(settings.audio_intensity + INTENSITY_STEP, 6)
    if "minus" in pressed:
        settings.audio_intensity = max(0.0, round(settings.audio_intensity - INTENSITY_STEP, 6))
    if "space" in pressed:
        settings.paused = not settings.paused
    if "escape" in pressed:
        input_state.quit_requested = True
    return settings


@dataclass
class SceneConfig:
    """Everything that distinguishes one scene variant from another."""

    name: str = "classic"
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    terrain: TerrainConfig = field(default_factory=TerrainConfig)
    gains: GainTable = field(default_factory=GainTable)
    bubbles: BubbleConfig = field(default_factory=BubbleConfig)
    foliage: FoliageConfig | None = None
    audio_reactive: bool = False

    # Clock
    max_delta: float = 0.05
    time_step: float | None = 0.01

    # Look (consumed by the preview renderer)
    terrain_color: tuple[int, int, int] = (0x11, 0x6B, 0x11)
    glow_enabled: bool = False
    glow_intensity: float = 0.3
    vignette_strength: float = 0.25


SCENE_VARIANTS: Dict[str, Dict[str, Any]] = {
    "classic": {},
    "meadow": {
        "foliage": FoliageConfig(),
    },
    "reactive": {
        "audio_reactive": True,
        "glow_enabled": True,
        "terrain_color": (0x1B, 0x4F, 0x72),
    },
    "sunset": {
        "bubbles": BubbleConfig(tint_range=((230, 255), (120, 190), (90, 160))),
        "terrain_color": (0x8A, 0x4B, 0x2F),
        "glow_enabled": True,
        "glow_intensity": 0.4,
    },
    "noir": {
        "bubbles": BubbleConfig(tint_range=((150, 220), (150, 220), (150, 220))),
        "terrain_color": (0x50, 0x50, 0x50),
        "vignette_strength": 0.6,
    },
}


def scene_config_for(variant: str, **overrides) -> SceneConfig:
    """
    Build the SceneConfig of a named variant.

    Args:
        variant: One of SCENE_VARIANTS.
        **overrides: SceneConfig fields that replace the preset's values.
    """
    if variant not in SCENE_VARIANTS:
        raise ConfigurationError(
            f"unknown scene variant {variant!r}; choose from {', '.join(SCENE_VARIANTS)}"
        )
    preset = dict(SCENE_VARIANTS[variant])
    preset.update(overrides)
    return replace(SceneConfig(name=variant), **preset)


@dataclass
class FrameState:
    """Buffers handed to the renderer after one tick."""

    time: float
    delta_time: float
    frame_index: int
    bands: BandEnergies
    terrain_positions: np.ndarray
    terrain_normals: np.ndarray
    terrain_version: int
    bubble_transforms: np.ndarray
    bubble_tints: np.ndarray
    foliage_matrices: np.ndarray | None


class Environment:
    """
    Builds and drives all scene components for one SceneConfig.

    Use as a context manager (or call ``close()``) so the capture handle is
    released on teardown.
    """

    def __init__(
        self,
        config: SceneConfig | None = None,
        capture: CaptureSource | None = None,
        settings: SceneSettings | None = None,
        seed: int | None = None,
        clock: FrameClock | None = None,
    ):
        self.cfg = config or SceneConfig()
        self.settings = settings or SceneSettings()
        self.capture = capture
        self.closed = False

        self.noise = NoiseField.from_config(self.cfg.noise)
        self.terrain = TerrainDriver(
            self.noise,
            self.cfg.terrain,
            gains=self.cfg.gains,
            reactive=self.cfg.audio_reactive,
        )
        self.terrain.build()

        self.spectrum: SpectrumExtractor | None = None
        if self.cfg.audio_reactive:
            self.spectrum = SpectrumExtractor(capture)

        self.bubbles = BubbleSimulator(self.cfg.bubbles, seed=seed)
        self.bubbles.spawn()

        self.foliage: FoliageField | None = None
        if self.cfg.foliage is not None:
            self.foliage = FoliageField(self.cfg.foliage, seed=seed)
            self.foliage.place(ground_height_fn=self.ground_height)

        self.clock = clock or FrameClock(max_delta=self.cfg.max_delta, time_step=self.cfg.time_step)
        self._last_frame = FrameTime(time=0.0, delta_time=0.0, frame_index=-1)
        self._bands = SILENCE

        # Last step: nothing below may raise once the capture is opening
        if self.spectrum is not None and capture is not None:
            capture.request_access()

        logger.info(
            "Scene %r ready: %d bubbles, %s foliage, audio %s",
            self.cfg.name,
            len(self.bubbles),
            self.foliage.count if self.foliage else "no",
            "on" if self.spectrum else "off",
        )

    def ground_height(self, x: float, z: float) -> float:
        """World-space height of the static terrain surface at (x, z)."""
        return self.cfg.terrain.offset + self.noise.height_at(x, z)

    def tick(
        self,
        input_state: InputState | None = None,
        frame_time: FrameTime | None = None,
    ) -> FrameState:
        """
        Advance the scene by one frame.

        Args:
            input_state: This frame's input; key presses are consumed.
            frame_time: Explicit frame time (offline rendering). Read from the
                clock if None.
        """
        if self.closed:
            raise RuntimeError("environment is closed")

        if input_state is not None:
            apply_input(self.settings, input_state)
            input_state.end_frame()

        ft = frame_time or self.clock.tick()
        self._last_frame = ft

        if not self.settings.paused:
            if self.spectrum is not None:
                self._bands = self.spectrum.sample()
            self.terrain.update(self._bands, intensity=self.settings.audio_intensity)
            self.bubbles.update(ft.time, ft.delta_time)
            if self.foliage is not None:
                self.foliage.update(ft.time)

        return self.state()

    def state(self) -> FrameState:
        ft = self._last_frame
        return FrameState(
            time=ft.time,
            delta_time=ft.delta_time,
            frame_index=ft.frame_index,
            bands=self._bands,
            terrain_positions=self.terrain.positions,
            terrain_normals=self.terrain.normals,
            terrain_version=self.terrain.version,
            bubble_transforms=self.bubbles.transforms(),
            bubble_tints=self.bubbles.tints(),
            foliage_matrices=self.foliage.matrices if self.foliage else None,
        )

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self.capture is not None:
            self.capture.close()
        logger.debug("Scene %r closed", self.cfg.name)

    def __enter__(self) -> "Environment":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
