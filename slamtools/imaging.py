"""Grayscale image sampling, bilinear resizing and image pyramids."""

from __future__ import annotations

import numpy as np


def _as_image(image, min_size: int = 1) -> np.ndarray:
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError(f"image must be a 2-D grayscale array, got shape {img.shape}")
    rows, cols = img.shape
    if rows < min_size or cols < min_size:
        raise ValueError(f"image must be at least {min_size}x{min_size}, got {img.shape}")
    return img


def _coordinates(x, y) -> tuple[np.ndarray, np.ndarray]:
    xs, ys = np.broadcast_arrays(np.asarray(x, dtype=float), np.asarray(y, dtype=float))
    return xs, ys


def _result(values: np.ndarray):
    if np.ndim(values) == 0:
        return float(values)
    return values


def bilinear_clamped(image, x, y):
    """Bilinear sample with coordinates clamped so both neighbours lie inside the image.

    Coordinates below zero become zero and those at or past ``size - 1``
    become ``size - 2``. Accepts scalars or arrays of coordinates.
    """
    img = np.asarray(_as_image(image, min_size=2), dtype=float)
    rows, cols = img.shape
    xs, ys = _coordinates(x, y)
    xs = np.where(xs < 0, 0.0, xs)
    ys = np.where(ys < 0, 0.0, ys)
    xs = np.where(xs >= cols - 1, cols - 2.0, xs)
    ys = np.where(ys >= rows - 1, rows - 2.0, ys)

    xx = xs - np.floor(xs)
    yy = ys - np.floor(ys)
    x0 = xs.astype(np.intp)
    y0 = ys.astype(np.intp)
    x1 = np.minimum(cols - 1, x0 + 1)
    y1 = np.minimum(rows - 1, y0 + 1)

    values = (
        (1 - xx) * (1 - yy) * img[y0, x0]
        + xx * (1 - yy) * img[y0, x1]
        + (1 - xx) * yy * img[y1, x0]
        + xx * yy * img[y1, x1]
    )
    return _result(values)


def bilinear(image, x, y):
    """Bilinear sample over the row-major pixel buffer.

    Coordinates are clamped to ``[0, size - 1]``; the right and lower
    neighbours are the next buffer entries, so a sample in the last column
    blends with the start of the next row. Reads past the buffer end use
    the last pixel.
    """
    img = np.asarray(_as_image(image), dtype=float)
    rows, cols = img.shape
    xs, ys = _coordinates(x, y)
    xs = np.where(xs < 0, 0.0, xs)
    ys = np.where(ys < 0, 0.0, ys)
    xs = np.where(xs >= cols, cols - 1.0, xs)
    ys = np.where(ys >= rows, rows - 1.0, ys)

    flat = img.ravel()
    last = flat.size - 1
    base = ys.astype(np.intp) * cols + xs.astype(np.intp)
    xx = xs - np.floor(xs)
    yy = ys - np.floor(ys)

    def at(offset: int) -> np.ndarray:
        return flat[np.minimum(base + offset, last)]

    values = (
        (1 - xx) * (1 - yy) * at(0)
        + xx * (1 - yy) * at(1)
        + (1 - xx) * yy * at(cols)
        + xx * yy * at(cols + 1)
    )
    return _result(values)


def _axis_weights(src: int, dst: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    scale = src / dst
    positions = (np.arange(dst) + 0.5) * scale - 0.5
    i0 = np.floor(positions).astype(np.intp)
    frac = positions - i0
    below = i0 < 0
    frac[below] = 0.0
    i0[below] = 0
    above = i0 >= src - 1
    frac[above] = 0.0
    i0[above] = src - 1
    i1 = np.minimum(i0 + 1, src - 1)
    return i0, i1, frac


def resize_bilinear(image, width, height) -> np.ndarray:
    """Resize to ``height`` rows by ``width`` columns with pixel-centre bilinear sampling.

    Integer images keep their dtype, with values rounded and clipped.
    """
    img = _as_image(image)
    width, height = int(width), int(height)
    if width < 1 or height < 1:
        raise ValueError(f"target size must be positive, got {width}x{height}")
    rows, cols = img.shape
    data = img.astype(float)

    y0, y1, fy = _axis_weights(rows, height)
    x0, x1, fx = _axis_weights(cols, width)
    vertical = data[y0] * (1 - fy)[:, np.newaxis] + data[y1] * fy[:, np.newaxis]
    out = vertical[:, x0] * (1 - fx) + vertical[:, x1] * fx

    if np.issubdtype(img.dtype, np.integer):
        info = np.iinfo(img.dtype)
        return np.clip(np.rint(out), info.min, info.max).astype(img.dtype)
    return out.astype(img.dtype) if np.issubdtype(img.dtype, np.floating) else out


def build_pyramid(image, levels=4, scale=0.5) -> list[np.ndarray]:
    """Image pyramid, finest first; each level is the previous one resized by ``scale``."""
    if levels < 1:
        raise ValueError("levels must be at least 1")
    if scale <= 0:
        raise ValueError("scale must be positive")
    pyramid = [_as_image(image)]
    for _ in range(1, levels):
        rows, cols = pyramid[-1].shape
        width, height = int(cols * scale), int(rows * scale)
        if width < 1 or height < 1:
            raise ValueError("image is too small for the requested pyramid")
        pyramid.append(resize_bilinear(pyramid[-1], width, height))
    return pyramid