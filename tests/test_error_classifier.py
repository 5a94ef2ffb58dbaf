import pytest

from error_classifier import ErrorCategory, categorize, classify, diagnostic_lines, failure_message
from errors import OutputNotProduced, ProcessingCanceled, SubprocessFailure

ENCODER_FAILURE = (
    "ffmpeg version 6.1\n"
    "Input #0, concat, from 'list.txt':\n"
    "[libx264 @ 0x7f] width not divisible by 2 (1281x720)\n"
    "Error initializing output stream 0:0 -- Error while opening encoder\n"
    "Conversion failed!\n"
)


def test_marker_lines_become_the_message(temp_dir):
    error = classify(1, ENCODER_FAILURE, False, temp_dir / "out.mp4")

    assert isinstance(error, SubprocessFailure)
    assert str(error) == ("Error initializing output stream 0:0 -- Error while opening encoder; "
                          "Conversion failed!")
    assert error.exit_code == 1
    assert error.diagnostic_text == ENCODER_FAILURE


def test_only_last_three_marker_lines_are_kept():
    text = "\n".join(f"Error number {i}" for i in range(6))
    assert failure_message(1, text) == "Error number 3; Error number 4; Error number 5"


def test_markers_are_case_sensitive():
    assert diagnostic_lines("error: lowercase\nINVALID upper\nFAILED too") == []


def test_generic_message_without_markers():
    error = classify(3, "something unexpected happened", False)
    assert isinstance(error, SubprocessFailure)
    assert str(error) == "FFmpeg exited with code 3"


def test_cancellation_wins_over_success(temp_dir):
    output = temp_dir / "out.mp4"
    output.write_bytes(b"data")
    assert isinstance(classify(0, "", True, output), ProcessingCanceled)


def test_cancellation_wins_over_failure():
    error = classify(1, ENCODER_FAILURE, True)
    assert isinstance(error, ProcessingCanceled)
    assert str(error) == "Canceled by user."


def test_success_without_output_is_structural_failure(temp_dir):
    error = classify(0, "", False, temp_dir / "missing.mp4")
    assert isinstance(error, OutputNotProduced)
    assert "missing.mp4" in str(error)


def test_success_with_output(temp_dir):
    output = temp_dir / "out.mp4"
    output.write_bytes(b"data")
    assert classify(0, "warnings only", False, output) is None


def test_redaction_hides_paths():
    error = classify(1, "Error opening input file /home/user/secret/clip.mov", False,
                     redact={"/home/user/secret/clip.mov": "video file"})
    assert str(error) == "Error opening input file video file"


@pytest.mark.parametrize("exit_code, cancelled, exists, expected", [
    (0, False, True, None),
    (0, False, False, ErrorCategory.OUTPUT_NOT_PRODUCED),
    (1, False, True, ErrorCategory.SUBPROCESS_FAILURE),
    (-1, False, False, ErrorCategory.SUBPROCESS_FAILURE),
    (0, True, True, ErrorCategory.CANCELLED),
    (9, True, False, ErrorCategory.CANCELLED),
])
def test_categorize_precedence(exit_code, cancelled, exists, expected):
    assert categorize(exit_code, cancelled, exists) == expected


def test_start_failure_is_the_message():
    error = classify(-1, "Failed to start '/opt/ffmpeg': No such file or directory", False,
                     start_error="Failed to start '/opt/ffmpeg': No such file or directory")
    assert isinstance(error, SubprocessFailure)
    assert str(error) == "Failed to start '/opt/ffmpeg': No such file or directory"
    assert error.exit_code == -1


def test_start_failure_still_yields_to_cancellation():
    assert isinstance(classify(-1, "", True, start_error="Failed to start 'ffmpeg'"), ProcessingCanceled)
