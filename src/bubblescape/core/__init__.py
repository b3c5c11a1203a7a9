"""Core procedural environment and audio-reactive components."""

from bubblescape.core.bubbles import BubbleConfig, BubbleEntity, BubbleSimulator
from bubblescape.core.capture import (
    CaptureSource,
    FileCapture,
    MicrophoneCapture,
    StaticCapture,
)
from bubblescape.core.clock import FrameClock, FrameTime
from bubblescape.core.foliage import FoliageConfig, FoliageField, FoliageInstance
from bubblescape.core.noise_field import NoiseConfig, NoiseField
from bubblescape.core.spectrum import BandEnergies, SpectrumExtractor
from bubblescape.core.terrain import GainTable, TerrainConfig, TerrainDriver
