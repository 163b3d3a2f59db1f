import cv2
import numpy as np

from .base import polarity_candidates, register_decoder, to_gray


@register_decoder("opencv")
class OpenCvQrDecoder:
    def __init__(self, params: dict):
        self._detector = cv2.QRCodeDetector()

    def decode(self, img: np.ndarray, both_polarities: bool = True) -> str | None:
        gray = np.ascontiguousarray(to_gray(img))
        for candidate in polarity_candidates(gray, both_polarities):
            text, _points, _ = self._detector.detectAndDecode(candidate)
            if text:
                return text
        return None


__all__ = ["OpenCvQrDecoder"]
