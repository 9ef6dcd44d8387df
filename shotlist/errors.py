from __future__ import annotations


class ShotlistError(RuntimeError):
    """Base class for failures that abort a shotlist run."""


class InputVideoError(ShotlistError):
    """The input video is missing or cannot be read."""


class ScratchStorageError(ShotlistError):
    """The per-run scratch directory could not be created."""


class OCREngineUnavailable(ShotlistError):
    """No OCR engine could be acquired for the run."""
