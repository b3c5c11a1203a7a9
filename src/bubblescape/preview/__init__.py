"""
Preview rendering: top-down rasterizer, colour grading, video encoding and
the live pygame window (``bubblescape.preview.window``).
"""

from bubblescape.preview.encoder import encode_video
from bubblescape.preview.renderer import PreviewConfig, PreviewRenderer
