"""
OpenImageIO adapter for reading and writing frame images.

Wraps the OIIO calls the pipeline needs: RGBA resampling, still image
export (PNG/BMP) and image loading.
"""

import logging
import threading
from pathlib import Path
from typing import List

import numpy as np
import OpenImageIO as oiio

from ..core.errors import OutputIOError

logger = logging.getLogger(__name__)


class OiioAdapter:
    """Thin wrapper for OIIO bindings."""

    # OIIO output plugins are not guaranteed to be thread-safe
    _lock = threading.Lock()

    @staticmethod
    def get_oiio_version() -> str:
        """Return OIIO version string."""
        if hasattr(oiio, "__version__"):
            return str(oiio.__version__)
        return "unknown"

    # ========== Processing ==========

    @staticmethod
    def resize_rgba(rgba: np.ndarray, width: int, height: int, filter_name: str) -> np.ndarray:
        """
        Resample an 8-bit RGBA array with ImageBufAlgo.resize.

        Args:
            rgba: (height, width, 4) uint8 array
            width: Target width
            height: Target height
            filter_name: OIIO filter name, e.g. "triangle" or "catmull-rom"

        Returns:
            (height, width, 4) uint8 array
        """
        src_h, src_w = rgba.shape[:2]
        src = oiio.ImageBuf(oiio.ImageSpec(src_w, src_h, 4, oiio.UINT8))
        src.set_pixels(oiio.ROI(), np.ascontiguousarray(rgba, dtype=np.uint8))
        roi = oiio.ROI(0, width, 0, height, 0, 1, 0, 4)
        dst = oiio.ImageBufAlgo.resize(src, filtername=filter_name, roi=roi)
        if dst is None or dst.has_error:
            raise RuntimeError(f"resize failed: {dst.geterror() if dst else 'no result'}")
        pixels = dst.get_pixels(oiio.UINT8)
        return np.asarray(pixels, dtype=np.uint8).reshape(height, width, 4)

    # ========== Writing ==========

    @staticmethod
    def write_image(output_path: Path, pixels: np.ndarray) -> None:
        """
        Write a single (height, width, channels) uint8 image.

        The file format follows the extension. Raises OutputIOError.
        """
        path_str = str(output_path).replace("\\", "/")
        height, width, channels = pixels.shape
        spec = oiio.ImageSpec(width, height, channels, oiio.UINT8)
        if channels == 4:
            spec.alpha_channel = 3
            spec.attribute("oiio:UnassociatedAlpha", 1)
        out = None
        try:
            with OiioAdapter._lock:
                out = oiio.ImageOutput.create(path_str)
                if not out:
                    raise OutputIOError(f"No image writer for {path_str}: {oiio.geterror()}", output_path)
                if not out.open(path_str, spec):
                    raise OutputIOError(f"Could not open {path_str}: {out.geterror()}", output_path)
                if not out.write_image(np.ascontiguousarray(pixels, dtype=np.uint8)):
                    raise OutputIOError(f"Could not write {path_str}: {out.geterror()}", output_path)
                out.close()
                out = None
        finally:
            if out:
                out.close()
        logger.debug("Wrote %s (%dx%d, %d channels)", path_str, width, height, channels)

    # ========== Reading ==========

    @staticmethod
    def read_rgba(input_path: Path) -> np.ndarray:
        """Read an image as a (height, width, 4) uint8 RGBA array."""
        path_str = str(input_path).replace("\\", "/")
        inp = oiio.ImageInput.open(path_str, OiioAdapter._read_config())
        if not inp:
            raise OutputIOError(f"Could not open {path_str}: {oiio.geterror()}", input_path)
        try:
            spec = inp.spec()
            pixels = inp.read_image(0, 0, 0, spec.nchannels, oiio.UINT8)
            if pixels is None:
                raise OutputIOError(f"Could not read {path_str}: {inp.geterror()}", input_path)
        finally:
            inp.close()
        pixels = np.asarray(pixels, dtype=np.uint8).reshape(spec.height, spec.width, spec.nchannels)
        return OiioAdapter._to_rgba(pixels)

    @staticmethod
    def list_subimages(input_path: Path) -> List[np.ndarray]:
        """Read every subimage (e.g. GIF frames) as RGBA arrays."""
        path_str = str(input_path).replace("\\", "/")
        buf = oiio.ImageBuf(path_str)
        count = max(buf.nsubimages, 1)
        result = []
        for index in range(count):
            sub = oiio.ImageBuf(path_str, index, 0, OiioAdapter._read_config())
            if sub.has_error:
                raise OutputIOError(f"Could not read {path_str}: {sub.geterror()}", input_path)
            spec = sub.spec()
            pixels = np.asarray(sub.get_pixels(oiio.UINT8), dtype=np.uint8)
            result.append(OiioAdapter._to_rgba(pixels.reshape(spec.height, spec.width, spec.nchannels)))
        return result

    @staticmethod
    def _read_config() -> "oiio.ImageSpec":
        """Reader hints: keep stored (straight) alpha as is."""
        config = oiio.ImageSpec()
        config.attribute("oiio:UnassociatedAlpha", 1)
        return config

    @staticmethod
    def _to_rgba(pixels: np.ndarray) -> np.ndarray:
        channels = pixels.shape[2]
        if channels == 4:
            return pixels
        alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
        if channels == 3:
            return np.concatenate([pixels, alpha], axis=2)
        if channels == 2:
            gray = pixels[..., :1]
            return np.concatenate([gray, gray, gray, pixels[..., 1:2]], axis=2)
        gray = pixels[..., :1]
        return np.concatenate([gray, gray, gray, alpha], axis=2)
