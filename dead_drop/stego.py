"""
Dead Drop Steganography Layer — LSB embedding in lossless images.

Layout inside the carrier, in raster order over the R, G, B channels:

    [magic 'DDv1' + length (4 bytes, BE)]  at 1 bit per channel (64 channels)
    [payload]                              at bits_per_channel (1-4)

Payload bits are taken MSB-first and packed into the low bits of each
channel. Alpha is carried through untouched. Output is always PNG.

Author: Ava Shakil
Date: 2026-10-17
"""

import io
import struct
import logging
import secrets

import numpy as np
from PIL import Image, ImageChops, UnidentifiedImageError

from .capacity import HEADER_CHANNELS, compute_capacity
from .errors import CapacityExceeded, CorruptCarrier, UnsupportedCarrierFormat


logger = logging.getLogger(__name__)

MAGIC = b'DDv1'
_HEADER = struct.Struct('>4sI')

LOSSLESS_FORMATS = {'PNG', 'BMP', 'TIFF'}


def _check_bits(bits_per_channel: int) -> None:
    if not 1 <= bits_per_channel <= 4:
        raise ValueError(f"bits_per_channel must be 1-4, got {bits_per_channel}")


def _open(image_bytes: bytes) -> Image.Image:
    """Open a carrier, refusing anything that would not survive byte-exact."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError):
        raise UnsupportedCarrierFormat("Cover image could not be decoded") from None

    if img.format not in LOSSLESS_FORMATS:
        raise UnsupportedCarrierFormat(
            f"Cover image format {img.format or 'unknown'} is not lossless; use PNG, BMP or TIFF"
        )
    # TIFF can wrap JPEG-compressed strips
    if img.format == 'TIFF' and 'jpeg' in str(img.info.get('compression', '')).lower():
        raise UnsupportedCarrierFormat("JPEG-compressed TIFF cannot carry a payload")
    return img


def _split_alpha(img: Image.Image) -> tuple:
    """Return (rgb_image, alpha_band or None)."""
    if img.mode in ('RGBA', 'LA', 'PA') or (img.mode == 'P' and 'transparency' in img.info):
        rgba = img.convert('RGBA')
        return rgba.convert('RGB'), rgba.getchannel('A')
    return img.convert('RGB'), None


def _to_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()


def inspect(image_bytes: bytes) -> tuple:
    """
    Validate a carrier and report its geometry.

    Returns:
        (width, height, format)

    Raises:
        UnsupportedCarrierFormat: lossy or unreadable image
    """
    img = _open(image_bytes)
    return img.width, img.height, img.format


def embed(carrier: bytes, payload: bytes, bits_per_channel: int = 1) -> bytes:
    """
    Hide payload bytes inside a carrier image.

    Args:
        carrier: Lossless image bytes (PNG, BMP, TIFF)
        payload: Opaque bytes to hide (normally a framed envelope)
        bits_per_channel: Payload density, 1-4. Must match on extract.

    Returns:
        PNG bytes of the stego image

    Raises:
        UnsupportedCarrierFormat: carrier is lossy or unreadable
        CapacityExceeded: header + payload do not fit
    """
    _check_bits(bits_per_channel)
    img = _open(carrier)
    rgb, alpha = _split_alpha(img)

    capacity = compute_capacity(rgb.width, rgb.height, bits_per_channel)
    total_channels = rgb.width * rgb.height * 3
    if total_channels < HEADER_CHANNELS or len(payload) > capacity:
        raise CapacityExceeded(capacity=capacity, required=len(payload))

    channels = np.frombuffer(rgb.tobytes(), dtype=np.uint8).copy()

    header = _HEADER.pack(MAGIC, len(payload))
    header_bits = np.unpackbits(np.frombuffer(header, dtype=np.uint8))
    channels[:HEADER_CHANNELS] = (channels[:HEADER_CHANNELS] & 0xFE) | header_bits

    values = _pack_groups(payload, bits_per_channel)
    if values.size:
        keep = np.uint8(0xFF ^ ((1 << bits_per_channel) - 1))
        end = HEADER_CHANNELS + values.size
        channels[HEADER_CHANNELS:end] = (channels[HEADER_CHANNELS:end] & keep) | values

    out = Image.frombytes('RGB', rgb.size, channels.tobytes())
    if alpha is not None:
        out.putalpha(alpha)

    logger.debug("Embedded %d bytes into %dx%d image at %d bit(s)/channel (capacity %d)",
                 len(payload), rgb.width, rgb.height, bits_per_channel, capacity)
    return _to_png(out)


def extract(stego_image: bytes, bits_per_channel: int = 1) -> bytes:
    """
    Recover the payload hidden by embed().

    Reads the header first and then exactly the declared number of bytes.

    Raises:
        UnsupportedCarrierFormat: image is lossy or unreadable
        CorruptCarrier: no header, or a length the image cannot hold
    """
    _check_bits(bits_per_channel)
    img = _open(stego_image)
    rgb, _ = _split_alpha(img)
    channels = np.frombuffer(rgb.tobytes(), dtype=np.uint8)

    if channels.size < HEADER_CHANNELS:
        raise CorruptCarrier()

    header = np.packbits(channels[:HEADER_CHANNELS] & 1).tobytes()
    magic, length = _HEADER.unpack(header)
    if magic != MAGIC:
        raise CorruptCarrier()

    capacity = compute_capacity(rgb.width, rgb.height, bits_per_channel)
    if length > capacity:
        raise CorruptCarrier("Declared payload length exceeds image capacity")

    payload = _unpack_groups(channels[HEADER_CHANNELS:], length, bits_per_channel)
    logger.debug("Extracted %d bytes from %dx%d image", len(payload), rgb.width, rgb.height)
    return payload


def _pack_groups(data: bytes, n: int) -> np.ndarray:
    """Split data into n-bit values, MSB-first, zero-padding the last group."""
    bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8))
    pad = (-bits.size) % n
    if pad:
        bits = np.concatenate([bits, np.zeros(pad, dtype=np.uint8)])
    weights = (1 << np.arange(n - 1, -1, -1)).astype(np.uint8)
    return (bits.reshape(-1, n) * weights).sum(axis=1).astype(np.uint8)


def _unpack_groups(channels: np.ndarray, length: int, n: int) -> bytes:
    if length == 0:
        return b''
    nbits = length * 8
    count = -(-nbits // n)
    values = channels[:count] & np.uint8((1 << n) - 1)
    shifts = np.arange(n - 1, -1, -1, dtype=np.uint8)
    bits = ((values[:, None] >> shifts) & 1).astype(np.uint8).reshape(-1)[:nbits]
    return np.packbits(bits).tobytes()


def generate_cover_image(width: int, height: int, base_color: tuple = None,
                         noise: float = 10.0) -> bytes:
    """
    Generate a decoy carrier: a solid colour with gaussian grain.

    A random base colour in 64..191 per channel is picked when none is given.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid cover dimensions {width}x{height}")
    if base_color is None:
        base_color = tuple(64 + secrets.randbelow(128) for _ in range(3))

    bands = []
    for value in base_color:
        band = Image.new('L', (width, height), int(value))
        # effect_noise is centred on 128
        grain = Image.effect_noise((width, height), noise)
        bands.append(ImageChops.add(band, grain, scale=1.0, offset=-128))

    return _to_png(Image.merge('RGB', bands))
