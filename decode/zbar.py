import numpy as np
from pyzbar import pyzbar

from .base import polarity_candidates, register_decoder, to_gray


@register_decoder("zbar")
class ZbarQrDecoder:
    """pyzbar backend; needs the system zbar library."""

    def __init__(self, params: dict):
        self.encoding = str(params.get("encoding", "utf-8"))

    def decode(self, img: np.ndarray, both_polarities: bool = True) -> str | None:
        gray = np.ascontiguousarray(to_gray(img))
        for candidate in polarity_candidates(gray, both_polarities):
            for obj in pyzbar.decode(candidate, symbols=[pyzbar.ZBarSymbol.QRCODE]):
                text = obj.data.decode(self.encoding, errors="replace").strip("\x00")
                if text:
                    return text
        return None


__all__ = ["ZbarQrDecoder"]
