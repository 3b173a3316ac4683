"""
Live Vision Source - MediaPipe Gesture Recognizer
=================================================

Camera capture plus the MediaPipe Tasks GestureRecognizer (VIDEO mode),
adapted to FrameInput for the control pipeline. The recognizer returns
both the 21 landmarks per hand and the ranked category labels
(Closed_Fist, Open_Palm, Pointing_Up, ...) the mode rules consume.

Requires the `live` extra (opencv-python, mediapipe).
"""

import logging
import time
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cv2
import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from touchless_map.core.types import FrameInput

logger = logging.getLogger(__name__)

GESTURE_RECOGNIZER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/gesture_recognizer/"
    "gesture_recognizer/float16/1/gesture_recognizer.task"
)
DEFAULT_MODEL_PATH = Path(__file__).parent.parent.parent / "models" / "gesture_recognizer.task"


@dataclass
class RecognizerConfig:
    """Camera and recognizer settings."""
    device_id: int = 0
    width: int = 1280
    height: int = 720
    flip_horizontal: bool = True
    model_path: str = ""
    max_hands: int = 2
    min_detection_confidence: float = 0.5
    min_presence_confidence: float = 0.5
    min_tracking_confidence: float = 0.5

    @classmethod
    def from_config(cls, config) -> "RecognizerConfig":
        """Create config from the `camera`, `recognizer` and `tracking` sections."""
        camera = config.get_section("camera")
        recognizer = config.get_section("recognizer")
        return cls(
            device_id=camera.get("device_id", 0),
            width=camera.get("width", 1280),
            height=camera.get("height", 720),
            flip_horizontal=camera.get("flip_horizontal", True),
            model_path=recognizer.get("model_path", "") or "",
            max_hands=config.get("tracking.max_hands", 2),
            min_detection_confidence=recognizer.get("min_detection_confidence", 0.5),
            min_presence_confidence=recognizer.get("min_presence_confidence", 0.5),
            min_tracking_confidence=recognizer.get("min_tracking_confidence", 0.5),
        )


def download_model(url: str, save_path: Path) -> bool:
    """Download the gesture recognizer model if not present."""
    if save_path.exists():
        return True
    try:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading gesture recognizer model to %s...", save_path)
        urllib.request.urlretrieve(url, save_path)
        logger.info("Model download complete")
        return True
    except OSError as e:
        logger.error("Failed to download model: %s", e)
        return False


class RecognizerSource:
    """Camera + GestureRecognizer producing FrameInput per frame.

    Example:
        >>> with RecognizerSource(RecognizerConfig()) as source:
        ...     frame = source.read()   # None when no frame is ready
    """

    def __init__(self, config: Optional[RecognizerConfig] = None):
        self.config = config or RecognizerConfig()
        self._cap: Optional[cv2.VideoCapture] = None
        self._recognizer: Optional[vision.GestureRecognizer] = None
        self._last_timestamp_ms = -1
        self._failed_reads = 0

    def start(self) -> bool:
        """Open the camera and load the model. Returns False on failure."""
        model_path = Path(self.config.model_path or DEFAULT_MODEL_PATH)
        if not model_path.exists() and not download_model(GESTURE_RECOGNIZER_MODEL_URL, model_path):
            logger.error("Could not obtain gesture recognizer model")
            return False

        try:
            options = vision.GestureRecognizerOptions(
                base_options=python.BaseOptions(model_asset_path=str(model_path)),
                running_mode=vision.RunningMode.VIDEO,
                num_hands=self.config.max_hands,
                min_hand_detection_confidence=self.config.min_detection_confidence,
                min_hand_presence_confidence=self.config.min_presence_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
            )
            self._recognizer = vision.GestureRecognizer.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            logger.error("Failed to initialize GestureRecognizer: %s", e)
            return False

        self._cap = cv2.VideoCapture(self.config.device_id)
        if not self._cap.isOpened():
            logger.error("Failed to open camera %d", self.config.device_id)
            self.stop()
            return False
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)

        logger.info("Recognizer source started (camera %d, max_hands=%d, model=%s)",
                    self.config.device_id, self.config.max_hands, model_path)
        return True

    def read(self) -> Optional[FrameInput]:
        """Grab one frame and run recognition; None when no frame is ready."""
        if self._cap is None or self._recognizer is None:
            return None

        ok, frame = self._cap.read()
        if not ok or frame is None:
            self._failed_reads += 1
            logger.debug("Camera read failed (%d so far)", self._failed_reads)
            return None

        if self.config.flip_horizontal:
            frame = cv2.flip(frame, 1)
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        # VIDEO mode needs strictly increasing timestamps
        timestamp_ms = int(time.monotonic() * 1000)
        if timestamp_ms <= self._last_timestamp_ms:
            timestamp_ms = self._last_timestamp_ms + 1
        self._last_timestamp_ms = timestamp_ms

        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        try:
            result = self._recognizer.recognize_for_video(image, timestamp_ms)
        except (RuntimeError, ValueError) as e:
            logger.warning("Recognition failed: %s", e)
            return None

        return FrameInput.from_recognizer_result(result, timestamp_ms=float(timestamp_ms))

    def stop(self):
        """Release camera and model."""
        if self._recognizer is not None:
            self._recognizer.close()
            self._recognizer = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        logger.info("Recognizer source stopped")

    def __enter__(self):
        if not self.start():
            raise RuntimeError("Recognizer source failed to start")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
