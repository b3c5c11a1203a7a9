"""
Live preview window.

Shows preview frames in a pygame window and turns keyboard/mouse events into
an InputState for the scene:

  ESC    - quit
  SPACE  - pause / resume
  + / -  - audio intensity up / down
"""

import logging

import pygame

from bubblescape.core.capture import FileCapture
from bubblescape.preview.renderer import PreviewRenderer
from bubblescape.scene import Environment, InputState

logger = logging.getLogger(__name__)

KEY_NAMES = {
    pygame.K_ESCAPE: "escape",
    pygame.K_SPACE: "space",
    pygame.K_PLUS: "plus",
    pygame.K_EQUALS: "plus",
    pygame.K_KP_PLUS: "plus",
    pygame.K_MINUS: "minus",
    pygame.K_KP_MINUS: "minus",
}


def poll_events(input_state: InputState) -> InputState:
    """Drain the pygame event queue into ``input_state``."""
    for event in pygame.event.get():
        if event.type == pygame.QUIT:
            input_state.quit_requested = True
        elif event.type == pygame.KEYDOWN:
            name = KEY_NAMES.get(event.key)
            if name:
                input_state.pressed.add(name)
                input_state.held.add(name)
        elif event.type == pygame.KEYUP:
            input_state.held.discard(KEY_NAMES.get(event.key, ""))
        elif event.type == pygame.MOUSEMOTION:
            dx, dy = event.rel
            input_state.mouse_dx += dx
            input_state.mouse_dy += dy
    return input_state


class LiveWindow:
    """Runs an Environment in real time until the window is closed."""

    def __init__(self, env: Environment, renderer: PreviewRenderer):
        self.env = env
        self.renderer = renderer
        self.input_state = InputState()

    def run(self):
        cfg = self.renderer.cfg
        pygame.init()
        try:
            screen = pygame.display.set_mode((cfg.width, cfg.height))
            pygame.display.set_caption(f"bubblescape - {self.env.cfg.name}")
            limiter = pygame.time.Clock()

            while True:
                poll_events(self.input_state)
                if isinstance(self.env.capture, FileCapture):
                    self.env.capture.seek(self.env.clock.frame_index + 1)
                state = self.env.tick(self.input_state)
                if self.input_state.quit_requested:
                    break

                frame = self.renderer.render_frame(state)
                # surfarray is (W, H, 3)
                pygame.surfarray.blit_array(screen, frame.swapaxes(0, 1))
                pygame.display.set_caption(
                    f"bubblescape - {self.env.cfg.name} - intensity "
                    f"{self.env.settings.audio_intensity:.1f}"
                    f"{' (paused)' if self.env.settings.paused else ''}"
                )
                pygame.display.flip()
                limiter.tick(cfg.fps)
        finally:
            self.env.close()
            pygame.quit()
            logger.info("Live preview closed")
