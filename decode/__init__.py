from .base import (
    QrDecoder,
    attempt_decode,
    create_decoder,
    normalize_payload,
    register_decoder,
)

__all__ = [
    "QrDecoder",
    "attempt_decode",
    "create_decoder",
    "normalize_payload",
    "register_decoder",
]
