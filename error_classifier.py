# error_classifier.py
from enum import Enum, auto
from pathlib import Path

import config
from errors import OutputNotProduced, ProcessingCanceled, SequenceStitchError, SubprocessFailure

class ErrorCategory(Enum):
    CANCELLED = auto()
    OUTPUT_NOT_PRODUCED = auto()
    SUBPROCESS_FAILURE = auto()

def categorize(exit_code: int | None, cancel_requested: bool, output_exists: bool = True) -> ErrorCategory | None:
    if cancel_requested:
        return ErrorCategory.CANCELLED
    if exit_code == 0:
        return None if output_exists else ErrorCategory.OUTPUT_NOT_PRODUCED
    return ErrorCategory.SUBPROCESS_FAILURE

def diagnostic_lines(diagnostic_text: str, markers: tuple[str, ...] = config.DIAGNOSTIC_MARKERS) -> list[str]:
    lines = []
    for line in diagnostic_text.splitlines():
        line = line.strip()
        if line and any(marker in line for marker in markers):
            lines.append(line)
    return lines

def failure_message(exit_code: int | None, diagnostic_text: str) -> str:
    lines = diagnostic_lines(diagnostic_text)
    if lines:
        return "; ".join(lines[-config.DIAGNOSTIC_MAX_LINES:])
    return f"FFmpeg exited with code {exit_code}"

def _redact(text: str, redact: dict[str, str] | None) -> str:
    for secret, replacement in (redact or {}).items():
        text = text.replace(secret, replacement)
    return text

def classify(
    exit_code: int | None,
    diagnostic_text: str,
    cancel_requested: bool,
    output_path: Path | None = None,
    redact: dict[str, str] | None = None,
    start_error: str = "",
) -> SequenceStitchError | None:
    """Return the error for a finished process, or None when it succeeded.

    ``redact`` maps substrings (typically user paths) to the text shown in
    their place in the message. A ``start_error`` (the process never ran)
    becomes the message as is.
    """
    output_exists = output_path is None or Path(output_path).exists()
    category = categorize(exit_code, cancel_requested, output_exists)

    if category is None:
        return None
    if category == ErrorCategory.CANCELLED:
        return ProcessingCanceled()
    if category == ErrorCategory.OUTPUT_NOT_PRODUCED:
        return OutputNotProduced(_redact(f"Output file was not created: {output_path}", redact))

    message = _redact(start_error or failure_message(exit_code, diagnostic_text), redact)
    return SubprocessFailure(message, exit_code=exit_code, diagnostic_text=diagnostic_text)
