# main.py
import sys
import signal
import argparse
import shutil
import tempfile
import traceback
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QTimer

import config
from errors import SequenceStitchError
from item_processor import create_items, import_folder
from models import (ExportSettings, FrameRateOption, NormalizationResolution, OutputFormat, ProjectModel,
                    QualityPreset, ResolutionScale, SequenceList, StackingMode)
from settings_manager import SettingsManager
from utils import cleanup_directory
from validator import ExportValidator, check_import_size
from video_processing import VideoProcessor

MIN_PYTHON_VERSION = (3, 10)

def check_python_version():
    if sys.version_info < MIN_PYTHON_VERSION:
        required_version = ".".join(map(str, MIN_PYTHON_VERSION))
        current_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        sys.stderr.write(
            f"\n[ERROR] Incompatible Python Version.\n"
            f"This application requires Python {required_version} or newer.\n"
            f"You are running version {current_version}.\n\n"
            f"Please upgrade your Python interpreter to run this application.\n"
        )
        sys.exit(1)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=config.APP_NAME,
        description="Turn image sequences into videos, and videos into image sequences."
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {config.APP_VERSION}")
    parser.add_argument('-v', '--verbose', action='store_true', help='Show FFmpeg output and state transitions')
    parser.add_argument('--ffmpeg', type=Path, default=None, help='Path to the ffmpeg executable')
    subparsers = parser.add_subparsers(dest='command', required=True)

    export_parser = subparsers.add_parser('export', help='Encode images into a video')
    export_parser.add_argument('inputs', nargs='*', type=Path,
                               help='Image/PDF files or a folder, in sequence order')
    export_parser.add_argument('-o', '--output', type=Path, required=True, help='Output video path')
    export_parser.add_argument('--project', type=Path, default=None,
                               help=f'Load sequences and settings from a {config.PROJECT_FILE_EXTENSION} file')
    export_parser.add_argument('--save-project', type=Path, default=None,
                               help='Save the resulting project file before exporting')
    export_parser.add_argument('--secondary', type=Path, default=None,
                               help='Folder holding the comparison sequence')
    export_parser.add_argument('-d', '--frame-duration', type=float, default=None,
                               help='Seconds each image is shown')
    export_parser.add_argument('--time-lapse', type=float, default=None, metavar='SECONDS',
                               help='Fit the whole sequence into this many seconds')
    export_parser.add_argument('--format', choices=[f.value for f in OutputFormat], default=None)
    export_parser.add_argument('--resolution', choices=[r.value for r in ResolutionScale], default=None)
    export_parser.add_argument('--quality', choices=[q.value for q in QualityPreset], default=None)
    export_parser.add_argument('--fps', type=int, choices=config.FPS_OPTIONS, default=None)
    export_parser.add_argument('--hardware', action='store_true', help='Use hardware encoding when available')
    export_parser.add_argument('--stacking', choices=[s.value for s in StackingMode], default=None)
    export_parser.add_argument('--spacing', type=int, default=None,
                               help='Pixels between stacked sequences (negative overlaps)')
    export_parser.add_argument('--normalize', choices=[n.value for n in NormalizationResolution], default=None,
                               help='Frame size both sequences are fitted into before stacking')
    export_parser.add_argument('--keep-temp', action='store_true', help='Keep intermediate files')

    import_parser = subparsers.add_parser('import', help='Extract distinct frames from a video')
    import_parser.add_argument('video', type=Path, help='Source video file')
    import_parser.add_argument('-o', '--output', type=Path, required=True, help='Folder receiving the frames')

    return parser

def _collect_items(paths: list[Path], render_dir: Path, logger) -> SequenceList:
    sequence = SequenceList()
    files = []
    for path in paths:
        if path.is_dir():
            sequence.add_items(import_folder(path, render_dir, logger))
        else:
            files.append(path)
    sequence.add_items(create_items(files, render_dir, logger))
    return sequence

def build_project(args, logger, render_dir: Path) -> ProjectModel:
    if args.project:
        project = SettingsManager(logger).load_project(args.project)
    else:
        project = ProjectModel()

    if args.inputs:
        project.primary = _collect_items(args.inputs, render_dir, logger)
    if args.secondary:
        project.secondary = _collect_items([args.secondary], render_dir, logger)

    if args.frame_duration is not None:
        project.frame_duration = args.frame_duration
    if args.time_lapse is not None:
        project.is_time_lapse_mode = True
        project.target_duration = args.time_lapse

    settings: ExportSettings = project.export_settings
    if args.format:
        settings.format = OutputFormat(args.format)
    if args.resolution:
        settings.resolution = ResolutionScale(args.resolution)
    if args.quality:
        settings.quality = QualityPreset(args.quality)
    if args.fps:
        settings.frame_rate = FrameRateOption(args.fps)
    if args.hardware:
        settings.use_hardware_encoding = True
    if args.stacking:
        settings.stacking_mode = StackingMode(args.stacking)
    elif project.is_comparison_mode and settings.stacking_mode == StackingMode.NONE:
        settings.stacking_mode = StackingMode.HORIZONTAL
    if args.spacing is not None:
        settings.stacking_spacing = args.spacing
    if args.normalize:
        settings.normalization_resolution = NormalizationResolution(args.normalize)
    if args.keep_temp:
        settings.keep_temp_files = True
    return project

class ConsoleReporter:
    def __init__(self, verbose: bool):
        self.verbose = verbose
        self._last_percent = -1

    def on_log(self, text: str, source: str = 'app'):
        if source == 'ffmpeg' and not self.verbose:
            return
        self._end_progress_line()
        print(text)

    def on_progress(self, value: float):
        percent = int(value * 100)
        if percent == self._last_percent:
            return
        self._last_percent = percent
        sys.stdout.write(f"\rProgress: {percent:3d}%")
        sys.stdout.flush()

    def _end_progress_line(self):
        if self._last_percent >= 0:
            sys.stdout.write("\n")
            self._last_percent = -1

    def finish(self):
        self._end_progress_line()

def run_export(args, processor: VideoProcessor, reporter: ConsoleReporter) -> int:
    render_dir = Path(tempfile.mkdtemp(prefix=config.RENDER_TEMP_DIR_PREFIX))
    try:
        return _export_project(args, processor, reporter, render_dir)
    finally:
        # A saved project refers to the rendered pages
        if args.save_project and any(render_dir.iterdir()):
            reporter.on_log(f"[INFO] Rendered PDF pages are kept in: {render_dir}", 'app')
        elif not cleanup_directory(render_dir):
            reporter.on_log(f"[WARNING] Could not remove temporary folder: {render_dir}", 'app')

def _export_project(args, processor: VideoProcessor, reporter: ConsoleReporter, render_dir: Path) -> int:
    project = build_project(args, reporter.on_log, render_dir)

    if args.save_project:
        SettingsManager(reporter.on_log).save_project(args.save_project, project)

    messages = ExportValidator(reporter.on_log, args.ffmpeg).validate(project)
    for warning in messages.project_warnings + messages.project_notices:
        reporter.on_log(f"[WARNING] {warning}", 'app')
    if messages.has_errors():
        for error in messages.project_errors:
            reporter.on_log(f"[ERROR] {error}", 'app')
        return 1

    output_path = args.output
    if not output_path.suffix:
        output_path = output_path.with_suffix(f".{project.export_settings.format.extension}")

    result = processor.run_export(project.build_export_request(output_path))
    reporter.finish()
    print(f"Video saved to: {result}")
    return 0

def run_import(args, processor: VideoProcessor, reporter: ConsoleReporter) -> int:
    check_import_size(args.video)
    frames = processor.run_import(args.video)
    reporter.finish()

    args.output.mkdir(parents=True, exist_ok=True)
    for frame in frames:
        shutil.copy2(frame, args.output / frame.name)
    cleanup_directory(frames[0].parent)
    print(f"{len(frames)} frames saved to: {args.output}")
    return 0

def main(argv=None) -> int:
    check_python_version()
    args = build_parser().parse_args(argv)
    config.LOG_STATE_TRANSITIONS = args.verbose

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    processor = VideoProcessor(ffmpeg_path=args.ffmpeg)
    processor.is_verbose = args.verbose
    reporter = ConsoleReporter(args.verbose)
    processor.log_message.connect(reporter.on_log)
    processor.progress_updated.connect(reporter.on_progress)

    # Ctrl+C cancels the running FFmpeg process; the timer lets Python see the signal
    previous_handler = signal.signal(signal.SIGINT, lambda *_: processor.cancel())
    wakeup_timer = QTimer()
    wakeup_timer.timeout.connect(lambda: None)
    wakeup_timer.start(200)

    try:
        if args.command == 'export':
            return run_export(args, processor, reporter)
        return run_import(args, processor, reporter)
    except (SequenceStitchError, ValueError, OSError) as e:
        reporter.finish()
        sys.stderr.write(f"[ERROR] {e}\n")
        return 1
    except Exception as e:
        reporter.finish()
        sys.stderr.write(f"\n[FATAL] An unhandled exception occurred: {e}\n")
        traceback.print_exc(file=sys.stderr)
        return 1
    finally:
        wakeup_timer.stop()
        signal.signal(signal.SIGINT, previous_handler)
        app.processEvents()

if __name__ == "__main__":
    sys.exit(main())
