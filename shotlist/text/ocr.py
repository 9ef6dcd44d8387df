from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Protocol

from shotlist.config import OCRSettings
from shotlist.errors import OCREngineUnavailable
from shotlist.models import Keyframe

logger = logging.getLogger(__name__)

DEFAULT_MIN_LINE_LENGTH = 3
DEFAULT_MAX_LINES = 8


class OCREngine(Protocol):
    def recognize(self, image_path: Path) -> str: ...

    def close(self) -> None: ...


OCREngineFactory = Callable[[], AbstractContextManager[OCREngine]]


class TesseractEngine:
    """Tesseract OCR over Pillow images, owned by a single pipeline run."""

    def __init__(
        self,
        language: str = "eng",
        config: str = "",
        upscale_min_width: int = 0,
    ) -> None:
        try:
            import pytesseract
        except ImportError as exc:
            raise OCREngineUnavailable("pytesseract is not installed.") from exc

        try:
            version = pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError as exc:
            raise OCREngineUnavailable(
                "tesseract executable was not found. Install Tesseract OCR so it is available on PATH."
            ) from exc

        logger.debug("Using tesseract %s (lang=%s)", version, language)
        self._pytesseract = pytesseract
        self.language = language
        self.config = config
        self.upscale_min_width = upscale_min_width
        self._closed = False

    def recognize(self, image_path: Path) -> str:
        if self._closed:
            raise RuntimeError("OCR engine has already been closed.")

        from PIL import Image, ImageOps

        try:
            with Image.open(image_path) as image:
                prepared = ImageOps.autocontrast(ImageOps.grayscale(image))
        except Image.DecompressionBombError as exc:
            raise RuntimeError(f"refusing oversized still {image_path.name}: {exc}") from exc

        if self.upscale_min_width and prepared.width < self.upscale_min_width:
            scale = self.upscale_min_width / prepared.width
            prepared = prepared.resize(
                (self.upscale_min_width, max(1, int(prepared.height * scale))),
                Image.Resampling.LANCZOS,
            )

        try:
            return self._pytesseract.image_to_string(prepared, lang=self.language, config=self.config)
        except self._pytesseract.TesseractError as exc:
            raise RuntimeError(f"tesseract failed on {image_path.name}: {exc}") from exc

    def close(self) -> None:
        self._closed = True


@contextmanager
def open_ocr_engine(settings: OCRSettings | None = None) -> Iterator[OCREngine]:
    """Acquire one OCR engine for a run and release it on every exit path."""

    resolved = settings or OCRSettings()
    engine = TesseractEngine(
        language=resolved.language,
        config=resolved.tesseract_config,
        upscale_min_width=resolved.upscale_min_width,
    )
    try:
        yield engine
    finally:
        engine.close()


def split_ocr_lines(
    text: str,
    min_length: int = DEFAULT_MIN_LINE_LENGTH,
    max_lines: int = DEFAULT_MAX_LINES,
) -> list[str]:
    lines = [line.strip() for line in (text or "").splitlines()]
    return [line for line in lines if len(line) >= min_length][:max_lines]


def recognize_keyframes(
    engine: OCREngine,
    keyframes: list[Keyframe],
    *,
    min_length: int = DEFAULT_MIN_LINE_LENGTH,
    max_lines: int = DEFAULT_MAX_LINES,
) -> list[list[str]]:
    """OCR each keyframe in shot order; failures yield no lines for that shot."""

    results: list[list[str]] = []
    for keyframe in keyframes:
        if keyframe.image_path is None:
            results.append([])
            continue

        try:
            raw_text = engine.recognize(keyframe.image_path)
        except (RuntimeError, OSError, ValueError) as exc:
            logger.warning("OCR failed for shot %d: %s", keyframe.shot_index, exc)
            results.append([])
            continue

        results.append(split_ocr_lines(raw_text, min_length=min_length, max_lines=max_lines))

    return results
