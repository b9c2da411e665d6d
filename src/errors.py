"""
src/errors.py
==============
Error hierarchy — ScribeRelay

Responsibility:
    - Define every failure kind the transcription service can raise
    - Separate startup failures (configuration) from per-job failures
    - Give the HTTP layer ONE base class (ProcessingError) to translate
      into a single "bad request / processing error" response

Failure kinds:
    (a) ConfigurationError        — missing/invalid credentials or settings,
                                    raised at startup only
    (b) UnsupportedMediaTypeError — rejected before the pipeline runs
    (c) SegmentationError         — tool missing, non-zero exit
        NoSegmentsProducedError   — tool succeeded but wrote nothing
    (d) TranscriptionError        — one upstream STT call failed
    (e) filesystem errors inside the workspace are raised as
        SegmentationError, so callers treat them identically to (c)
"""


class ScribeRelayError(Exception):
    """Base class for all service errors."""


class ConfigurationError(ScribeRelayError):
    """Raised at startup when required settings are missing or invalid."""


class UnsupportedMediaTypeError(ScribeRelayError):
    """Raised when an upload's MIME type is not in the allow-list."""


class ProcessingError(ScribeRelayError):
    """Base class for failures of a single transcription job."""


class EmptyUploadError(ProcessingError):
    """Raised when the uploaded audio has zero bytes."""


class SegmentationError(ProcessingError):
    """Raised when the segmentation tool or the workspace filesystem fails."""


class NoSegmentsProducedError(SegmentationError):
    """Raised when segmentation exits cleanly but produced no sub-files."""


class TranscriptionError(ProcessingError):
    """
    Raised when one call to the STT service fails.

    Carries the upstream error message and, on the split path, the index
    of the segment whose call failed.
    """

    def __init__(self, message: str, segment_index: int | None = None):
        self.message = message
        self.segment_index = segment_index
        if segment_index is not None:
            super().__init__(f"Segment {segment_index}: {message}")
        else:
            super().__init__(message)
