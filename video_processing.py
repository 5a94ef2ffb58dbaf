# video_processing.py
import tempfile
from pathlib import Path

from PIL import Image
from PySide6.QtCore import QObject, Signal, Slot

import config
from concat_list import image_paths_from_entries, parse_concat_file, write_concat_file, write_simple_concat_file
from error_classifier import classify
from errors import BinaryNotFound, EmptyInput, ProcessingCanceled, SubprocessFailure
from ffmpeg_builder import (InputDescriptor, InputKind, build_export_invocation,
                            build_normalize_invocation, even_floor, stacking_filter)
from frame_extractor import FrameExtractor
from models import ExportRequest, PipelineInvocation
from process_supervisor import ProcessSupervisor
from progress import HeuristicProgressEstimator, MeasuredProgressParser, ProgressTracker
from utils import cleanup_directory, find_ffmpeg, find_ffprobe, format_command, is_executable_file

class VideoProcessor(QObject):
    progress_updated = Signal(float)
    log_message = Signal(str, str)
    export_finished = Signal(bool, str)
    import_finished = Signal(bool, object)

    def __init__(self, ffmpeg_path: Path | None = None, temp_root: Path | None = None,
                 search_path: str | None = None):
        super().__init__()
        self._is_canceled = False
        self._is_verbose = False
        self._ffmpeg_path = Path(ffmpeg_path) if ffmpeg_path else None
        self._temp_root = Path(temp_root) if temp_root else None
        self._search_path = search_path
        self._supervisor: ProcessSupervisor | None = None

        self.progress = ProgressTracker(self)
        self.progress.progress_updated.connect(self.progress_updated)

    @property
    def is_verbose(self) -> bool:
        return self._is_verbose

    @is_verbose.setter
    def is_verbose(self, value: bool):
        self._is_verbose = value

    @Slot()
    def cancel(self):
        self._is_canceled = True
        self.progress.stop()
        if self._supervisor is not None:
            self._supervisor.cancel()

    @Slot(object, bool)
    def start_export(self, request: ExportRequest, is_verbose: bool):
        self._is_verbose = is_verbose
        try:
            output_path = self.run_export(request)
            self.export_finished.emit(True, str(output_path))
        except ProcessingCanceled as e:
            self.log_message.emit("Export was canceled by user.", 'app')
            self.export_finished.emit(False, str(e))
        except Exception as e:
            self.log_message.emit(f"[ERROR] Export failed: {e}", 'app')
            self.export_finished.emit(False, str(e))

    @Slot(object, bool)
    def start_import(self, video_path: Path, is_verbose: bool):
        self._is_verbose = is_verbose
        try:
            frames = self.run_import(video_path)
            self.import_finished.emit(True, frames)
        except ProcessingCanceled as e:
            self.log_message.emit("Import was canceled by user.", 'app')
            self.import_finished.emit(False, str(e))
        except Exception as e:
            self.log_message.emit(f"[ERROR] Import failed: {e}", 'app')
            self.import_finished.emit(False, str(e))

    def _log(self, text: str, source: str = 'app'):
        self.log_message.emit(text, source)

    def _resolve_ffmpeg(self) -> Path:
        if self._ffmpeg_path is not None:
            if not is_executable_file(self._ffmpeg_path):
                raise BinaryNotFound(f"FFmpeg not found at '{self._ffmpeg_path}'.")
            return self._ffmpeg_path
        return find_ffmpeg(self._search_path)

    def _create_temp_dir(self, prefix: str) -> Path:
        if self._temp_root is not None:
            self._temp_root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=prefix, dir=self._temp_root))

    @Slot(object)
    def _forward_encoder_output(self, data: bytes):
        text = data.decode('utf-8', errors='replace').strip()
        if text:
            self.log_message.emit(text, 'ffmpeg')

    def _run_invocation(self, invocation: PipelineInvocation, stdout_handler=None,
                        redact: dict[str, str] | None = None):
        if self._is_canceled:
            raise ProcessingCanceled()

        self._log(f"Running command: {format_command(invocation.command_list)}")

        supervisor = ProcessSupervisor(invocation)
        supervisor.stderr_received.connect(self._forward_encoder_output)
        if stdout_handler is not None:
            supervisor.stdout_received.connect(stdout_handler)

        self._supervisor = supervisor
        try:
            supervisor.start()
            supervisor.wait_for_finished()
        finally:
            self._supervisor = None

        error = classify(
            supervisor.exit_code,
            supervisor.diagnostic_text,
            supervisor.cancel_requested or self._is_canceled,
            invocation.output_path,
            redact,
            supervisor.start_error,
        )
        if error is not None:
            raise error

    def _normalization_dimensions(self, request: ExportRequest) -> tuple[int, int]:
        dimensions = request.settings.normalization_resolution.dimensions
        if dimensions is not None:
            return dimensions

        first_image = request.primary[0].processed_path
        try:
            with Image.open(first_image) as img:
                width, height = img.size
        except OSError as e:
            fallback = config.NORMALIZATION_RESOLUTIONS["1080p"]
            self._log(f"[WARNING] Could not read size of '{first_image.name}' ({e}); "
                      f"normalizing to {fallback[0]}x{fallback[1]}.")
            return fallback
        return max(even_floor(width), 2), max(even_floor(height), 2)

    def _normalize_sequence(self, ffmpeg_path: Path, concat_path: Path, output_path: Path,
                            frame_duration: float, dimensions: tuple[int, int], temp_dir: Path) -> Path:
        image_paths = image_paths_from_entries(parse_concat_file(concat_path))
        simple_list = temp_dir / f"{output_path.stem}_simple.txt"
        write_simple_concat_file(image_paths, simple_list)

        self._log(f"Normalizing {len(image_paths)} images to {dimensions[0]}x{dimensions[1]}...")
        invocation = build_normalize_invocation(
            ffmpeg_path, simple_list, output_path, frame_duration, dimensions,
            working_directory=temp_dir, verbose=self._is_verbose,
        )
        try:
            self._run_invocation(invocation)
        except SubprocessFailure as e:
            raise SubprocessFailure(
                f"Normalization failed with code {e.exit_code}: {e}",
                exit_code=e.exit_code,
                diagnostic_text=e.diagnostic_text,
            ) from e
        return output_path

    def run_export(self, request: ExportRequest) -> Path:
        self._is_canceled = False
        self.progress.reset()

        primary_paths = [item.processed_path for item in request.primary]
        if not primary_paths:
            raise EmptyInput("No images to export")
        if request.frame_duration <= 0:
            raise ValueError(f"Frame duration must be greater than zero, got {request.frame_duration}")

        ffmpeg_path = self._resolve_ffmpeg()
        settings = request.settings
        output_path = Path(request.output_path)

        dimensions = None
        if request.is_stacked:
            dimensions = self._normalization_dimensions(request)
            # Reject an impossible overlap before anything is rendered
            stacking_filter(settings.stacking_mode, settings.stacking_spacing, dimensions)

        temp_dir = self._create_temp_dir(config.TEMP_DIR_PREFIX)
        estimator = HeuristicProgressEstimator(self.progress)
        self._log(f"Exporting {len(primary_paths)} images to '{output_path.name}'...")

        try:
            if output_path.exists():
                output_path.unlink()
            estimator.start(request.frame_count, settings.uses_hardware_codec)

            primary_list = temp_dir / "primary_list.txt"
            write_concat_file(primary_paths, request.frame_duration, primary_list)

            if request.is_stacked:
                secondary_list = temp_dir / "secondary_list.txt"
                write_concat_file([item.processed_path for item in request.secondary],
                                  request.frame_duration, secondary_list)

                primary_video = self._normalize_sequence(
                    ffmpeg_path, primary_list, temp_dir / "primary_normalized.mp4",
                    request.frame_duration, dimensions, temp_dir)
                secondary_video = self._normalize_sequence(
                    ffmpeg_path, secondary_list, temp_dir / "secondary_normalized.mp4",
                    request.frame_duration, dimensions, temp_dir)

                self._log(f"Stacking sequences ({settings.stacking_mode.value.lower()})...")
                invocation = build_export_invocation(
                    ffmpeg_path,
                    InputDescriptor(primary_video, InputKind.NORMALIZED_VIDEO, dimensions),
                    output_path,
                    settings,
                    secondary=InputDescriptor(secondary_video, InputKind.NORMALIZED_VIDEO, dimensions),
                    working_directory=temp_dir,
                    verbose=self._is_verbose,
                )
            else:
                invocation = build_export_invocation(
                    ffmpeg_path,
                    InputDescriptor(primary_list),
                    output_path,
                    settings,
                    working_directory=temp_dir,
                    verbose=self._is_verbose,
                )

            self._run_invocation(invocation)
            estimator.stop()
            self.progress.complete()
            self._log(f"Export finished: {output_path}")
            return output_path

        except Exception:
            if output_path.exists():
                try:
                    output_path.unlink()
                except OSError as e:
                    self._log(f"[WARNING] Could not remove incomplete output '{output_path}': {e}")
            raise

        finally:
            estimator.stop()
            self.progress.stop()
            if settings.keep_temp_files:
                self._log(f"Temporary files are being kept in: {temp_dir}")
            elif not cleanup_directory(temp_dir):
                self._log(f"[WARNING] Could not remove temporary folder: {temp_dir}")

    def run_import(self, video_path: Path) -> list[Path]:
        self._is_canceled = False
        self.progress.reset()

        video_path = Path(video_path)
        if not video_path.is_file():
            raise EmptyInput(f"Video file not found: {video_path}")

        ffmpeg_path = self._resolve_ffmpeg()
        extractor = FrameExtractor(
            ffmpeg_path,
            find_ffprobe(ffmpeg_path, self._search_path),
            logger=self._log,
        )
        duration = extractor.read_duration(video_path)
        parser = MeasuredProgressParser(self.progress, duration)

        output_dir = self._create_temp_dir(config.IMPORT_TEMP_DIR_PREFIX)
        self._log(f"Extracting frames from '{video_path.name}'...")

        try:
            invocation = extractor.build_invocation(video_path, output_dir, self._is_verbose)
            self._run_invocation(invocation, stdout_handler=parser.feed,
                                 redact={str(video_path): "video file"})

            frames = extractor.collect_frames(output_dir)
            if not frames:
                raise EmptyInput("No frames were extracted from the video file")

            self.progress.complete()
            self._log(f"Extracted {len(frames)} frames to: {output_dir}")
            return frames

        except Exception:
            if not cleanup_directory(output_dir):
                self._log(f"[WARNING] Could not remove temporary folder: {output_dir}")
            raise

        finally:
            self.progress.stop()
