"""
Dead Drop — Carrier capacity planning.

Pure arithmetic over image dimensions: how many payload bytes fit,
and how large a generated carrier must be for a given payload.

Author: Ava Shakil
Date: 2026-10-17
"""

import math


CHANNELS_PER_PIXEL = 3  # R, G, B; alpha is never written

# Header: magic(4) + length(4), always written at 1 bit per channel
HEADER_BYTES = 8
HEADER_CHANNELS = HEADER_BYTES * 8

HEADROOM_BYTES = 100
MIN_WIDTH = 8
MIN_HEIGHT = 6


def _check_bits(bits_per_channel: int) -> None:
    if not 1 <= bits_per_channel <= 4:
        raise ValueError(f"bits_per_channel must be 1-4, got {bits_per_channel}")


def compute_capacity(width: int, height: int, bits_per_channel: int = 1) -> int:
    """
    Maximum payload bytes an image can carry.

    The header takes the first 64 channels at 1 bit each; the payload uses
    the remaining channels at ``bits_per_channel``.
    """
    _check_bits(bits_per_channel)
    channels = width * height * CHANNELS_PER_PIXEL
    payload_channels = channels - HEADER_CHANNELS
    if payload_channels <= 0:
        return 0
    return (payload_channels * bits_per_channel) // 8


def choose_dimensions(payload_bytes: int, bits_per_channel: int = 1) -> tuple:
    """
    Size a generated carrier for a payload, with headroom, at roughly 4:3.

    Returns:
        (width, height)
    """
    _check_bits(bits_per_channel)
    required = payload_bytes + HEADROOM_BYTES
    channels = math.ceil(required * 8 / bits_per_channel) + HEADER_CHANNELS
    pixels = math.ceil(channels / CHANNELS_PER_PIXEL)

    width = max(MIN_WIDTH, math.ceil(math.sqrt(pixels * 4 / 3)))
    height = max(MIN_HEIGHT, math.ceil(width * 0.75))
    return width, height


def validate(width: int, height: int, payload_bytes: int, bits_per_channel: int = 1) -> dict:
    """Check whether a payload fits; also used for utilization reporting."""
    capacity = compute_capacity(width, height, bits_per_channel)
    return {
        'valid': payload_bytes <= capacity,
        'capacity': capacity,
        'required': payload_bytes,
    }


def utilization(payload_bytes: int, capacity: int) -> str:
    if capacity <= 0:
        return '100.00%'
    return f"{payload_bytes / capacity * 100:.2f}%"
