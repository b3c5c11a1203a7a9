"""
Bubblescape: procedural terrain, floating bubbles and swaying foliage,
driven by live audio.
"""

__version__ = "0.1.0"

from bubblescape.scene import (
    SCENE_VARIANTS,
    Environment,
    FrameState,
    InputState,
    SceneConfig,
    SceneSettings,
    scene_config_for,
)

__all__ = [
    "SCENE_VARIANTS",
    "Environment",
    "FrameState",
    "InputState",
    "SceneConfig",
    "SceneSettings",
    "scene_config_for",
]
