"""
Low-level color science utilities shared across the pixel-art pipeline.

Provides:
    - sRGB -> linear -> XYZ -> Lab conversion (D65 white point)
    - Vectorised CIEDE2000 implementation for perceptual palette matching
    - Rec. 709 relative luminance used for ramp ordering and edge contrast

All functions accept NumPy arrays so callers can operate on entire grids, yet they
also work with plain Python iterables for single color conversions.
"""

from __future__ import annotations

import numpy as np

SRGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ],
    dtype=np.float64,
)

D65_WHITE = np.array([0.95047, 1.0, 1.08883], dtype=np.float64)

LAB_EPSILON = 0.008856
LAB_KAPPA_SLOPE = 7.787

LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)

POW25_7 = 25.0**7


def _to_ndarray(color) -> np.ndarray:
    arr = np.asarray(color, dtype=np.float64)
    if arr.shape[-1] != 3:
        raise ValueError("Input color must have three channels")
    return arr


def clamp255(value) -> np.ndarray:
    """Clamp channel values to [0, 255] without rounding."""
    return np.clip(np.asarray(value, dtype=np.float64), 0.0, 255.0)


def to_uint8(value) -> np.ndarray:
    """Store float channels into 8 bits: clamp, then round half to even."""
    arr = np.nan_to_num(np.asarray(value, dtype=np.float64), nan=0.0)
    return np.rint(np.clip(arr, 0.0, 255.0)).astype(np.uint8)


def round_half_up(value):
    """Round .5 upwards, unlike Python's round() which rounds half to even."""
    return np.floor(np.asarray(value, dtype=np.float64) + 0.5)


def srgb_to_linear(value) -> np.ndarray:
    """Decode 8-bit sRGB channel values (0-255) to linear light (0-1)."""
    x = np.asarray(value, dtype=np.float64) / 255.0
    return np.where(x <= 0.04045, x / 12.92, ((x + 0.055) / 1.055) ** 2.4)


def rgb_to_xyz(rgb) -> np.ndarray:
    """Convert sRGB (0-255) to CIE XYZ (D65)."""
    linear = srgb_to_linear(_to_ndarray(rgb))
    r, g, b = linear[..., 0], linear[..., 1], linear[..., 2]

    # Row by row so every color sees the same summation order.
    m = SRGB_TO_XYZ
    x = r * m[0, 0] + g * m[0, 1] + b * m[0, 2]
    y = r * m[1, 0] + g * m[1, 1] + b * m[1, 2]
    z = r * m[2, 0] + g * m[2, 1] + b * m[2, 2]
    return np.stack([x, y, z], axis=-1)


def xyz_to_lab(xyz) -> np.ndarray:
    """Convert XYZ to Lab (D65)."""
    xyz = _to_ndarray(xyz)

    def f(t):
        return np.where(t > LAB_EPSILON, np.cbrt(t), LAB_KAPPA_SLOPE * t + 16 / 116)

    fx = f(xyz[..., 0] / D65_WHITE[0])
    fy = f(xyz[..., 1] / D65_WHITE[1])
    fz = f(xyz[..., 2] / D65_WHITE[2])

    L = 116 * fy - 16
    a = 500 * (fx - fy)
    b = 200 * (fy - fz)
    return np.stack([L, a, b], axis=-1)


def rgb_to_lab(rgb) -> np.ndarray:
    """Convenience helper for sRGB -> Lab."""
    return xyz_to_lab(rgb_to_xyz(rgb))


def luminance(rgb) -> np.ndarray:
    """Relative luminance in [0, 1] computed on gamma-encoded channels."""
    rgb = _to_ndarray(rgb)
    wr, wg, wb = LUMA_WEIGHTS
    return (wr * rgb[..., 0] + wg * rgb[..., 1] + wb * rgb[..., 2]) / 255


def _rad(deg):
    return deg * np.pi / 180


def _deg(rad):
    return rad * 180 / np.pi


def delta_e2000(lab1, lab2) -> np.ndarray:
    """
    CIEDE2000 color difference with numpy broadcasting.

    lab1 and lab2 may be:
        - matching shapes (...,3)
        - lab1 shape (...,3) and lab2 shape (3,) (broadcast)
    Returns an array with the broadcasted leading dimensions.

    The hue terms follow Sharma, Wu & Dalal (2005): the hue difference is zero
    when either chroma vanishes, and the mean hue takes the +/-360 branch when
    the two hues lie more than 180 degrees apart.
    """
    lab1 = _to_ndarray(lab1)
    lab2 = _to_ndarray(lab2)

    L1, a1, b1 = lab1[..., 0], lab1[..., 1], lab1[..., 2]
    L2, a2, b2 = lab2[..., 0], lab2[..., 1], lab2[..., 2]

    L_mean = (L1 + L2) / 2

    C1 = np.sqrt(a1 * a1 + b1 * b1)
    C2 = np.sqrt(a2 * a2 + b2 * b2)
    C_mean = (C1 + C2) / 2

    C_mean7 = C_mean**7
    G = 0.5 * (1 - np.sqrt(C_mean7 / (C_mean7 + POW25_7)))

    a1_prime = (1 + G) * a1
    a2_prime = (1 + G) * a2

    C1_prime = np.sqrt(a1_prime * a1_prime + b1 * b1)
    C2_prime = np.sqrt(a2_prime * a2_prime + b2 * b2)
    C_mean_prime = (C1_prime + C2_prime) / 2

    h1_prime = np.mod(_deg(np.arctan2(b1, a1_prime)) + 360, 360)
    h2_prime = np.mod(_deg(np.arctan2(b2, a2_prime)) + 360, 360)

    chroma_product = C1_prime * C2_prime
    achromatic = chroma_product == 0

    h_diff = h2_prime - h1_prime
    delta_h_prime = np.where(
        np.abs(h_diff) <= 180,
        h_diff,
        np.where(h_diff > 180, h_diff - 360, h_diff + 360),
    )
    delta_h_prime = np.where(achromatic, 0.0, delta_h_prime)

    delta_L_prime = L2 - L1
    delta_C_prime = C2_prime - C1_prime
    delta_H_prime = 2 * np.sqrt(chroma_product) * np.sin(_rad(delta_h_prime / 2))

    H_sum = h1_prime + h2_prime
    H_wrapped = (H_sum + 360) / 2
    H_wrapped = np.where(H_sum >= 360, H_wrapped - 360, H_wrapped)
    H_mean_prime = np.where(np.abs(h1_prime - h2_prime) <= 180, H_sum / 2, H_wrapped)
    H_mean_prime = np.where(achromatic, H_sum, H_mean_prime)

    T = (
        1
        - 0.17 * np.cos(_rad(H_mean_prime - 30))
        + 0.24 * np.cos(_rad(2 * H_mean_prime))
        + 0.32 * np.cos(_rad(3 * H_mean_prime + 6))
        - 0.20 * np.cos(_rad(4 * H_mean_prime - 63))
    )

    delta_theta = 30 * np.exp(-(((H_mean_prime - 275) / 25) ** 2))
    C_mean_prime7 = C_mean_prime**7
    R_C = 2 * np.sqrt(C_mean_prime7 / (C_mean_prime7 + POW25_7))
    S_L = 1 + (0.015 * (L_mean - 50) ** 2) / np.sqrt(20 + (L_mean - 50) ** 2)
    S_C = 1 + 0.045 * C_mean_prime
    S_H = 1 + 0.015 * C_mean_prime * T
    R_T = -np.sin(_rad(2 * delta_theta)) * R_C

    return np.sqrt(
        (delta_L_prime / S_L) ** 2
        + (delta_C_prime / S_C) ** 2
        + (delta_H_prime / S_H) ** 2
        + R_T * (delta_C_prime / S_C) * (delta_H_prime / S_H)
    )


def pairwise_delta_e(palette_lab) -> np.ndarray:
    """(k, k) table where entry [i, j] is delta_e2000(palette_lab[i], palette_lab[j])."""
    lab = _to_ndarray(palette_lab).reshape(-1, 3)
    return delta_e2000(lab[:, np.newaxis, :], lab[np.newaxis, :, :])
