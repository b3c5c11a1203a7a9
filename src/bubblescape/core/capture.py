"""
Audio capture sources.

Every source exposes a one-shot ``request_access()`` and a frame-rate
``read_magnitudes()`` returning a fixed-length, low-to-high magnitude
spectrum scaled to bytes (0-255), the same shape a browser analyser node
hands to a render loop.

- MicrophoneCapture: live input via sounddevice; access is opened on a
  background thread so the frame loop never waits on it.
- FileCapture: an audio file decoded with librosa and pre-analysed into an
  STFT spectrogram, one column per video frame.
- StaticCapture: a fixed spectrum, for silent scenes and tests.
"""

import abc
import logging
import threading
from pathlib import Path

import librosa
import numpy as np

from bubblescape.errors import CaptureUnavailableError, ConfigurationError

logger = logging.getLogger(__name__)

# Decibel window mapped onto 0-255
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0


def to_byte_spectrum(
    magnitudes: np.ndarray,
    n_fft: int,
    min_db: float = MIN_DECIBELS,
    max_db: float = MAX_DECIBELS,
) -> np.ndarray:
    """
    Convert linear FFT magnitudes to 0-255 decibel levels.

    Args:
        magnitudes: Linear magnitudes, any shape.
        n_fft: FFT size the magnitudes came from (used to normalize).
        min_db: Level mapped to 0.
        max_db: Level mapped to 255.

    Returns:
        uint8 array of the same shape.
    """
    db = librosa.amplitude_to_db(np.asarray(magnitudes) / n_fft, ref=1.0, amin=1e-10, top_db=None)
    scaled = (db - min_db) / (max_db - min_db) * 255.0
    return np.clip(scaled, 0, 255).astype(np.uint8)


class CaptureSource(abc.ABC):
    """Audio capture collaborator polled by the spectrum extractor."""

    def __init__(self, bin_count: int = 128):
        if bin_count <= 0:
            raise ConfigurationError(f"bin_count must be positive, got {bin_count!r}")
        self.bin_count = int(bin_count)
        self.ready = False
        self.failed = False
        self.error: BaseException | None = None

    @abc.abstractmethod
    def request_access(self) -> None:
        """Start acquiring the capture handle. Called once."""

    @abc.abstractmethod
    def read_magnitudes(self) -> np.ndarray:
        """Return the latest ``bin_count`` magnitudes, low to high."""

    def close(self) -> None:
        """Release the capture handle."""
        self.ready = False

    def _fail(self, error: BaseException):
        self.error = error
        self.failed = True
        self.ready = False


class StaticCapture(CaptureSource):
    """Returns the same spectrum on every read."""

    def __init__(self, magnitudes, ready: bool = True):
        magnitudes = np.asarray(magnitudes, dtype=np.float64).ravel()
        super().__init__(bin_count=max(magnitudes.size, 1))
        self.magnitudes = magnitudes
        self.ready = ready

    def request_access(self) -> None:
        self.ready = True

    def read_magnitudes(self) -> np.ndarray:
        if not self.ready:
            raise CaptureUnavailableError("static capture is closed")
        return self.magnitudes


class FileCapture(CaptureSource):
    """
    Spectrum frames from an audio file, aligned to a video frame rate.

    Call ``seek(frame_index)`` before each read; reads past the end of the
    file return silence.
    """

    def __init__(
        self,
        path: Path,
        fps: int = 60,
        bin_count: int = 128,
        sample_rate: int = 22050,
    ):
        super().__init__(bin_count=bin_count)
        if fps <= 0:
            raise ConfigurationError(f"fps must be positive, got {fps!r}")
        self.path = Path(path)
        self.fps = fps
        self.sample_rate = sample_rate
        self.n_fft = 2 * self.bin_count
        self.frame_index = 0
        self.duration = 0.0
        self._spectrogram: np.ndarray | None = None

    def compute_hop_length(self) -> int:
        """Samples per video frame."""
        return int(self.sample_rate / self.fps)

    def request_access(self) -> None:
        if self.ready or self.failed:
            return
        if not self.path.exists():
            self._fail(FileNotFoundError(f"audio file not found: {self.path}"))
            logger.warning("Could not load %s: file not found", self.path)
            return
        try:
            y, sr = librosa.load(self.path, sr=self.sample_rate, mono=True)
        except Exception as exc:  # each decoder backend raises its own error types
            self._fail(exc)
            logger.warning("Could not load %s: %s", self.path, exc)
            return

        stft = np.abs(librosa.stft(y, n_fft=self.n_fft, hop_length=self.compute_hop_length()))
        # Drop the Nyquist bin so there are exactly bin_count bands
        self._spectrogram = to_byte_spectrum(stft[: self.bin_count], self.n_fft)
        self.duration = len(y) / sr
        self.ready = True
        logger.debug(
            "Loaded %s: %.1fs, %d spectrum frames", self.path, self.duration, self.n_frames
        )

    @property
    def n_frames(self) -> int:
        return 0 if self._spectrogram is None else self._spectrogram.shape[1]

    def seek(self, frame_index: int) -> None:
        self.frame_index = max(int(frame_index), 0)

    def read_magnitudes(self) -> np.ndarray:
        if not self.ready or self._spectrogram is None:
            raise CaptureUnavailableError(f"{self.path} is not loaded")
        if self.frame_index >= self.n_frames:
            return np.zeros(self.bin_count, dtype=np.uint8)
        return self._spectrogram[:, self.frame_index]


class MicrophoneCapture(CaptureSource):
    """
    Live microphone spectrum.

    ``request_access()`` returns immediately; the input stream is opened on a
    daemon thread and ``ready`` flips once it is running. The stream callback
    only keeps the most recent block.
    """

    def __init__(
        self,
        bin_count: int = 128,
        sample_rate: int = 44100,
        device: int | str | None = None,
    ):
        super().__init__(bin_count=bin_count)
        self.sample_rate = sample_rate
        self.device = device
        self.block_size = 2 * self.bin_count
        self._window = np.hanning(self.block_size)
        self._latest: np.ndarray | None = None
        self._stream = None
        self._requested = False
        self._closed = False
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def request_access(self) -> None:
        if self._requested:
            return
        self._requested = True
        self._thread = threading.Thread(target=self._open, name="mic-access", daemon=True)
        self._thread.start()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the access attempt finishes (not for use in the frame loop)."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.ready

    def _open(self):
        try:
            # PortAudio is loaded on import; a missing library is a capture failure
            import sounddevice as sd

            stream = sd.InputStream(
                device=self.device,
                channels=1,
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                dtype="float32",
                callback=self._callback,
            )
            stream.start()
        except Exception as exc:  # PortAudioError, OSError, permission errors
            self._fail(exc)
            logger.warning("Microphone access failed: %s", exc)
            return

        with self._lock:
            closed = self._closed
            if not closed:
                self._stream = stream
                self.ready = True
        if closed:
            # close() ran while the device was opening
            stream.stop()
            stream.close()
            logger.debug("Microphone opened after close, released it")
            return
        logger.info("Microphone capture started at %d Hz", self.sample_rate)

    def _callback(self, indata, frames, time_info, status):
        if status:
            logger.debug("Input stream status: %s", status)
        self._latest = indata[:, 0].copy()

    def read_magnitudes(self) -> np.ndarray:
        if not self.ready:
            raise CaptureUnavailableError("microphone is not open")
        block = self._latest
        if block is None or block.size != self.block_size:
            return np.zeros(self.bin_count, dtype=np.uint8)
        spectrum = np.abs(np.fft.rfft(block * self._window))[: self.bin_count]
        return to_byte_spectrum(spectrum, self.block_size)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            stream, self._stream = self._stream, None
            super().close()
        if stream is not None:
            stream.stop()
            stream.close()
            logger.info("Microphone capture stopped")
