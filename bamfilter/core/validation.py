"""
Validation engine for conversions.

Structured pre-flight rules evaluated before any file is written.
Returns ValidationIssue lists; ERROR severity blocks the conversion.
"""

import logging
from typing import List

from .errors import DecoderInvariantError, UnsupportedCombinationError
from .types import (
    ConversionSettings,
    FrameSet,
    TargetVersion,
    ValidationIssue,
    ValidationSeverity,
)

logger = logging.getLogger(__name__)

LEGACY_MAX_DIMENSION = 255

# Issue codes describing a broken frame set rather than a bad filter/target pairing
DECODER_CODES = {
    "NO_FRAMES",
    "INVALID_CYCLE_REFERENCE",
    "DIMENSION_MISMATCH",
}


class ValidationEngine:
    """Validates frame sets and output preconditions."""

    @staticmethod
    def validate_frame_set(frame_set: FrameSet) -> List[ValidationIssue]:
        """
        Validate the structure of a decoded frame set.

        Returns list of ValidationIssue; conversion is blocked if any ERROR present.
        """
        issues = []

        if frame_set.frame_count() == 0:
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    code="NO_FRAMES",
                    message="Frame set does not contain any frames.",
                )
            )
            return issues

        for cycle_idx, frame_idx in frame_set.invalid_cycle_references():
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    code="INVALID_CYCLE_REFERENCE",
                    message=f"Cycle {cycle_idx} references missing frame {frame_idx}.",
                    context={"cycle": cycle_idx, "frame": frame_idx},
                )
            )

        for cycle_idx, cycle in enumerate(frame_set.cycles):
            if not cycle.frame_indices:
                issues.append(
                    ValidationIssue(
                        severity=ValidationSeverity.WARNING,
                        code="EMPTY_CYCLE",
                        message=f"Cycle {cycle_idx} is empty.",
                        context={"cycle": cycle_idx},
                    )
                )

        return issues

    @staticmethod
    def validate_target(frame_set: FrameSet, settings: ConversionSettings) -> List[ValidationIssue]:
        """Check frames against limits of the selected target version."""
        issues = []
        if settings.target == TargetVersion.LEGACY:
            truecolor = [i for i, f in enumerate(frame_set.frames) if not f.is_indexed]
            if truecolor:
                issues.append(
                    ValidationIssue(
                        severity=ValidationSeverity.ERROR,
                        code="TRUECOLOR_FOR_LEGACY",
                        message="Legacy target requires palette-indexed frames.",
                        context={"frames": truecolor},
                    )
                )
            oversized = [
                i for i, f in enumerate(frame_set.frames)
                if f.width > LEGACY_MAX_DIMENSION or f.height > LEGACY_MAX_DIMENSION
            ]
            if oversized:
                issues.append(
                    ValidationIssue(
                        severity=ValidationSeverity.WARNING,
                        code="FRAME_TOO_LARGE",
                        message=(
                            f"{len(oversized)} frame(s) exceed {LEGACY_MAX_DIMENSION} pixels; "
                            "consider splitting the output."
                        ),
                        context={"frames": oversized},
                    )
                )
        return issues

    @staticmethod
    def validate_uniform_dimensions(frame_set: FrameSet) -> List[ValidationIssue]:
        """All frames must share one width and height."""
        issues = []
        sizes = {(f.width, f.height) for f in frame_set.frames}
        if len(sizes) > 1:
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    code="DIMENSION_MISMATCH",
                    message="All frames must have the same width and height.",
                    context={"sizes": sorted(sizes)},
                )
            )
        return issues

    @staticmethod
    def validate_indexed(frame_set: FrameSet) -> List[ValidationIssue]:
        """All frames must be palette-indexed."""
        issues = []
        if any(not f.is_indexed for f in frame_set.frames):
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    code="INDEXED_REQUIRED",
                    message="Output requires palette-indexed frames.",
                )
            )
        return issues

    @staticmethod
    def raise_for_errors(issues: List[ValidationIssue]) -> None:
        """Log warnings and raise for the first ERROR issue."""
        for issue in issues:
            if issue.severity == ValidationSeverity.WARNING:
                logger.warning("%s", issue)
        errors = [i for i in issues if i.severity == ValidationSeverity.ERROR]
        if not errors:
            return
        for issue in errors:
            logger.error("%s", issue)
        first = errors[0]
        if first.code in DECODER_CODES:
            raise DecoderInvariantError(first.message)
        raise UnsupportedCombinationError(first.message)
