"""Vectorised color space conversions (RGB <-> HSL, RGB <-> CIELAB)."""

import numpy as np

# D65 reference white
_WHITE_X = 95.047
_WHITE_Y = 100.0
_WHITE_Z = 108.883


def rgb_to_hsl(r, g, b):
    """
    Convert 0..255 channel arrays to hue, saturation, lightness in [0, 1].
    """
    r = np.asarray(r, dtype=np.float64) / 255.0
    g = np.asarray(g, dtype=np.float64) / 255.0
    b = np.asarray(b, dtype=np.float64) / 255.0
    cmin = np.minimum(np.minimum(r, g), b)
    cmax = np.maximum(np.maximum(r, g), b)
    delta = cmax - cmin
    l = (cmax + cmin) / 2.0

    h = np.zeros_like(l)
    s = np.zeros_like(l)
    chroma = delta != 0.0
    safe_delta = np.where(chroma, delta, 1.0)
    s = np.where(chroma & (l < 0.5), delta / np.where(chroma, cmax + cmin, 1.0), s)
    s = np.where(chroma & (l >= 0.5), delta / np.where(chroma, 2.0 - cmax - cmin, 1.0), s)

    dr = ((cmax - r) / 6.0 + delta / 2.0) / safe_delta
    dg = ((cmax - g) / 6.0 + delta / 2.0) / safe_delta
    db = ((cmax - b) / 6.0 + delta / 2.0) / safe_delta
    h = np.where(chroma & (r == cmax), db - dg, h)
    h = np.where(chroma & (r != cmax) & (g == cmax), 1.0 / 3.0 + dr - db, h)
    h = np.where(chroma & (r != cmax) & (g != cmax), 2.0 / 3.0 + dg - dr, h)
    h = np.where(h < 0.0, h + 1.0, h)
    h = np.where(h > 1.0, h - 1.0, h)
    return h, s, l


def _hue_to_channel(f1, f2, t):
    t = np.where(t < 0.0, t + 1.0, t)
    t = np.where(t > 1.0, t - 1.0, t)
    return np.where(
        6.0 * t < 1.0, f1 + (f2 - f1) * 6.0 * t,
        np.where(
            2.0 * t < 1.0, f2,
            np.where(3.0 * t < 2.0, f1 + (f2 - f1) * (2.0 / 3.0 - t) * 6.0, f1),
        ),
    )


def hsl_to_rgb(h, s, l):
    """Convert hue, saturation, lightness in [0, 1] back to 0..255 int arrays."""
    h = np.asarray(h, dtype=np.float64)
    s = np.asarray(s, dtype=np.float64)
    l = np.asarray(l, dtype=np.float64)
    f2 = np.where(l < 0.5, l * (1.0 + s), (l + s) - (s * l))
    f1 = 2.0 * l - f2
    r = _hue_to_channel(f1, f2, h + 1.0 / 3.0)
    g = _hue_to_channel(f1, f2, h)
    b = _hue_to_channel(f1, f2, h - 1.0 / 3.0)
    gray = s == 0.0
    r = np.where(gray, l, r)
    g = np.where(gray, l, g)
    b = np.where(gray, l, b)
    return tuple(np.clip((c * 255.0).astype(np.int32), 0, 255) for c in (r, g, b))


def _linearize(c):
    c = np.asarray(c, dtype=np.float64) / 255.0
    return np.where(c > 0.04045, ((c + 0.055) / 1.055) ** 2.4, c / 12.92) * 100.0


def _lab_f(t):
    return np.where(t > 0.008856, np.cbrt(t), 7.787 * t + 16.0 / 116.0)


def _lab_f_inv(t):
    t3 = t ** 3
    return np.where(t3 > 0.008856, t3, (t - 16.0 / 116.0) / 7.787)


def rgb_to_lab(r, g, b):
    """Convert 0..255 sRGB channel arrays to CIELAB (L, a, b)."""
    rl, gl, bl = _linearize(r), _linearize(g), _linearize(b)
    x = rl * 0.4124 + gl * 0.3576 + bl * 0.1805
    y = rl * 0.2126 + gl * 0.7152 + bl * 0.0722
    z = rl * 0.0193 + gl * 0.1192 + bl * 0.9505
    fx = _lab_f(x / _WHITE_X)
    fy = _lab_f(y / _WHITE_Y)
    fz = _lab_f(z / _WHITE_Z)
    return 116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz)


def lab_to_rgb(lum, a, b):
    """Convert CIELAB arrays back to 0..255 sRGB int arrays."""
    fy = (np.asarray(lum, dtype=np.float64) + 16.0) / 116.0
    fx = np.asarray(a, dtype=np.float64) / 500.0 + fy
    fz = fy - np.asarray(b, dtype=np.float64) / 200.0
    x = _lab_f_inv(fx) * _WHITE_X / 100.0
    y = _lab_f_inv(fy) * _WHITE_Y / 100.0
    z = _lab_f_inv(fz) * _WHITE_Z / 100.0

    rl = x * 3.2406 + y * -1.5372 + z * -0.4986
    gl = x * -0.9689 + y * 1.8758 + z * 0.0415
    bl = x * 0.0557 + y * -0.2040 + z * 1.0570

    def _gamma(c):
        c = np.maximum(c, 0.0)
        c = np.where(c > 0.0031308, 1.055 * c ** (1.0 / 2.4) - 0.055, 12.92 * c)
        return np.clip(np.round(c * 255.0), 0, 255).astype(np.int32)

    return _gamma(rl), _gamma(gl), _gamma(bl)
