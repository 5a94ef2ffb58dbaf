# validator.py
import subprocess
from pathlib import Path

import config
from errors import BinaryNotFound, VideoTooLarge
from ffmpeg_builder import stacking_filter
from models import ProjectModel, StackingMode, ValidationMessages
from utils import find_ffmpeg, find_ffprobe, is_executable_file

def check_encoder_functionality(encoder_name: str, ffmpeg_path: Path | None = None) -> bool:
    try:
        ffmpeg_path = str(ffmpeg_path or find_ffmpeg())
    except BinaryNotFound:
        return False

    command_list = [
        ffmpeg_path,
        '-loglevel', 'error',
        '-f', 'lavfi',
        '-i', f'color=c=black:s={config.ENCODER_TEST_RESOLUTION}:r={config.ENCODER_TEST_FRAMERATE}',
        '-c:v', encoder_name,
        '-t', str(config.ENCODER_TEST_DURATION_S),
        '-pix_fmt', config.OUTPUT_PIXEL_FORMAT,
        '-f', 'null',
        '-'
    ]

    try:
        result = subprocess.run(
            command_list,
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
            timeout=config.ENCODER_TEST_TIMEOUT_S,
            creationflags=config.SUBPROCESS_CREATION_FLAGS
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False

def check_import_size(video_path: Path, max_bytes: int = config.MAX_IMPORT_VIDEO_BYTES):
    size = Path(video_path).stat().st_size
    if size > max_bytes:
        raise VideoTooLarge(
            f"Video file is too large ({size / (1024 * 1024):.0f} MB). "
            f"The maximum supported size is {max_bytes // (1024 * 1024)} MB."
        )

class ExportValidator:
    def __init__(self, logger=None, ffmpeg_path: Path | None = None):
        self.log = logger if callable(logger) else lambda *args, **kwargs: None
        self.ffmpeg_path = ffmpeg_path

    def _get_tool_version(self, tool_path: Path) -> str:
        try:
            result = subprocess.run(
                [str(tool_path), "-version"],
                capture_output=True,
                text=True,
                timeout=5,
                encoding='utf-8',
                errors='replace',
                creationflags=config.SUBPROCESS_CREATION_FLAGS
            )
            if result.returncode == 0 and result.stdout:
                return result.stdout.splitlines()[0].split()[2]
            return "N/A"
        except (subprocess.TimeoutExpired, OSError, IndexError):
            return "Error"

    def _check_ffmpeg_installation(self, messages: ValidationMessages) -> Path | None:
        try:
            if self.ffmpeg_path is not None:
                if not is_executable_file(Path(self.ffmpeg_path)):
                    raise BinaryNotFound(f"FFmpeg not found at '{self.ffmpeg_path}'.")
                ffmpeg_path = Path(self.ffmpeg_path)
            else:
                ffmpeg_path = find_ffmpeg()
        except BinaryNotFound as e:
            messages.add_project_error(str(e))
            return None

        ffprobe_path = find_ffprobe(ffmpeg_path)
        if ffprobe_path is None:
            messages.add_project_notice("ffprobe was not found. Video import will not report progress.")
            return ffmpeg_path

        ffmpeg_version = self._get_tool_version(ffmpeg_path)
        ffprobe_version = self._get_tool_version(ffprobe_path)
        if ffmpeg_version != "Error" and ffprobe_version != "Error" and ffmpeg_version != ffprobe_version:
            messages.add_project_warning(
                f"FFmpeg version ({ffmpeg_version}) and ffprobe version ({ffprobe_version}) do not match."
            )
        return ffmpeg_path

    def _check_sequences(self, project_model: ProjectModel, messages: ValidationMessages):
        if len(project_model.primary) == 0:
            messages.add_project_error("No images to export. Add images to the sequence first.")

        if project_model.is_time_lapse_mode:
            low, high = config.TIME_LAPSE_DURATION_RANGE
            if not low <= project_model.target_duration <= high:
                messages.add_project_error(
                    f"Time-lapse target duration must be between {low} and {high} seconds."
                )

        if project_model.effective_frame_duration <= 0:
            messages.add_project_error("Frame duration must be greater than zero.")

        for label, sequence in (("primary", project_model.primary), ("secondary", project_model.secondary)):
            for item in sequence:
                if not item.processed_path.exists():
                    messages.add_project_error(
                        f"Image not found in {label} sequence: {item.original_filename}"
                    )

    def _check_hardware_encoder(self, project_model: ProjectModel, messages: ValidationMessages,
                                ffmpeg_path: Path | None):
        settings = project_model.export_settings
        if not settings.use_hardware_encoding:
            return
        if settings.format.hardware_codec is None:
            messages.add_project_warning(
                f"{settings.format.value} has no hardware encoder; software encoding will be used."
            )
            return
        if ffmpeg_path is None:
            return
        if not check_encoder_functionality(settings.format.hardware_codec, ffmpeg_path):
            messages.add_project_warning(
                f"The hardware encoder '{settings.format.hardware_codec}' is not functional on this system. "
                "Disable hardware encoding to use reliable software encoding."
            )

    def _check_stacking(self, project_model: ProjectModel, messages: ValidationMessages):
        settings = project_model.export_settings
        has_secondary = project_model.is_comparison_mode

        if settings.stacking_mode == StackingMode.NONE:
            if has_secondary:
                messages.add_project_notice("Stacking is off; the secondary sequence will not be exported.")
            return

        if not has_secondary:
            messages.add_project_warning(
                "Stacking is enabled but the secondary sequence is empty; only the primary sequence will be exported."
            )
            return

        if len(project_model.primary) != len(project_model.secondary):
            messages.add_project_warning(
                f"Sequences differ in length ({len(project_model.primary)} vs "
                f"{len(project_model.secondary)} images); the shorter one holds its last frame "
                "until the longer one ends."
            )

        if settings.stacking_spacing % 2:
            messages.add_project_notice(
                f"Spacing {settings.stacking_spacing}px will be rounded down to an even value."
            )

        dimensions = settings.normalization_resolution.dimensions
        if dimensions is not None:
            try:
                stacking_filter(settings.stacking_mode, settings.stacking_spacing, dimensions)
            except ValueError as e:
                messages.add_project_error(str(e))

    def validate(self, project_model: ProjectModel) -> ValidationMessages:
        self.log("[INFO] Starting export validation...")
        messages = ValidationMessages()

        ffmpeg_path = self._check_ffmpeg_installation(messages)
        self._check_sequences(project_model, messages)
        self._check_hardware_encoder(project_model, messages, ffmpeg_path)
        self._check_stacking(project_model, messages)

        self.log(f"[INFO] Validation finished: {len(messages.project_errors)} error(s), "
                 f"{len(messages.project_warnings)} warning(s).")
        return messages
