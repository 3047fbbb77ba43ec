# services/capture.py
"""
Capture devices feeding raw QR payloads to the scan orchestrator.

A device yields decoded strings one at a time. While paused it keeps
draining its source but drops what it reads, the same way a camera keeps
producing frames nobody looks at.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod

logger = logging.getLogger('scan_service')


class CaptureDevice(ABC):
    """Source of raw scan payloads."""

    def __init__(self):
        self._active = threading.Event()
        self._active.set()
        self._running = False

    @property
    def paused(self):
        return not self._active.is_set()

    def start(self):
        self._running = True
        self._active.set()

    def pause(self):
        self._active.clear()

    def resume(self):
        self._active.set()

    def stop(self):
        self._running = False

    @abstractmethod
    def payloads(self):
        """Yield raw payload strings until the source is exhausted or stopped."""


class StreamCaptureDevice(CaptureDevice):
    """Reads one payload per line from a text stream such as stdin."""

    def __init__(self, stream):
        super().__init__()
        self.stream = stream

    def payloads(self):
        for line in self.stream:
            if not self._running:
                break

            payload = line.strip()
            if not payload:
                continue

            if self.paused:
                logger.debug("Dropped payload read while scanner is paused")
                continue

            yield payload


class CameraCaptureDevice(CaptureDevice):
    """Webcam frames decoded with OpenCV's QR detector."""

    def __init__(self, camera_index=0, poll_interval=0.05):
        super().__init__()
        self.camera_index = camera_index
        self.poll_interval = poll_interval
        self._capture = None
        self._detector = None

    def start(self):
        import cv2

        self._capture = cv2.VideoCapture(self.camera_index)
        if not self._capture.isOpened():
            raise RuntimeError(f"Could not open camera {self.camera_index}")
        self._detector = cv2.QRCodeDetector()
        super().start()
        logger.info(f"Camera {self.camera_index} started")

    def payloads(self):
        while self._running:
            ok, frame = self._capture.read()
            if not ok:
                logger.warning(f"Camera {self.camera_index} stopped delivering frames")
                break

            if self.paused:
                time.sleep(self.poll_interval)
                continue

            data, points, _ = self._detector.detectAndDecode(frame)
            if data:
                yield data.strip()
            else:
                time.sleep(self.poll_interval)

    def stop(self):
        super().stop()
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera {self.camera_index} released")
