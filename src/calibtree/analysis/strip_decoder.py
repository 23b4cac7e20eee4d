"""Packed strip record decoding.

Each APV stores its 128 strips as one base64 blob of 32-bit words. A word is
read by hex-encoding the decoded bytes, taking 8 hex characters at a time and
reversing their byte pairs (little-endian words). From each word:

- noise    = bits 13-21, in tenths of an ADC count
- pedestal = bits 22-31

Windows past the 128th strip are dropped and logged.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Union

import numpy as np

from calibtree.analysis.queries import STRIP_CHANNELS

__all__ = ["StripRecord", "decode", "unpack_word"]

logger = logging.getLogger(__name__)

NOISE_SHIFT = 13
NOISE_MASK = 0x1FF
PEDESTAL_SHIFT = 22
PEDESTAL_MASK = 0x3FF
WINDOW = 8


@dataclass
class StripRecord:
    """Noise and pedestal of every strip of one APV."""
    noise: np.ndarray
    pedestal: np.ndarray
    mean_noise: float
    mean_pedestal: float
    n_windows: int = 0
    n_dropped: int = 0


def unpack_word(value: int) -> tuple:
    """Return ``(noise, pedestal)`` packed in one strip word."""
    noise = ((value >> NOISE_SHIFT) & NOISE_MASK) / 10.0
    pedestal = (value >> PEDESTAL_SHIFT) & PEDESTAL_MASK
    return noise, pedestal


def _padded(blob) -> bytes:
    """Base64 text without whitespace, padded to a multiple of 4."""
    if isinstance(blob, str):
        blob = blob.encode("ascii")
    if not isinstance(blob, (bytes, bytearray, memoryview)):
        raise TypeError(f"Strip blob must be bytes or str, got {type(blob).__name__}")
    blob = b"".join(bytes(blob).split())
    return blob + b"=" * (-len(blob) % 4)


def _reversed_pairs(window: str) -> str:
    return "".join(window[k:k + 2] for k in range(len(window), -1, -2))


def decode(blob: Union[bytes, str]) -> StripRecord:
    """Decode one base64 strip blob.

    Parameters
    ----------
    blob : bytes or str
        Base64 text as stored in the configuration database. Missing
        trailing padding and embedded whitespace are tolerated.

    Returns
    -------
    StripRecord
        Exactly 128 channels. Strips not present in the blob stay at zero
        and count towards the means.

    Raises
    ------
    ValueError
        If ``blob`` is not valid base64.
    TypeError
        If ``blob`` is neither bytes nor str.
    """
    hex_text = base64.b64decode(_padded(blob)).hex()

    noise = np.zeros(STRIP_CHANNELS, dtype=np.float64)
    pedestal = np.zeros(STRIP_CHANNELS, dtype=np.float64)

    n_windows = 0
    n_dropped = 0
    for index, start in enumerate(range(0, len(hex_text), WINDOW)):
        word_text = _reversed_pairs(hex_text[start:start + WINDOW])
        value = int(word_text, 16) if word_text else 0
        n_windows += 1
        if index < STRIP_CHANNELS:
            noise[index], pedestal[index] = unpack_word(value)
        else:
            n_dropped += 1
            logger.debug("Would fill strip %d with word %d, dropped", index, value)

    return StripRecord(
        noise=noise,
        pedestal=pedestal,
        mean_noise=float(noise.sum() / STRIP_CHANNELS),
        mean_pedestal=float(pedestal.sum() / STRIP_CHANNELS),
        n_windows=n_windows,
        n_dropped=n_dropped,
    )
