# worker_manager.py
from pathlib import Path
from PySide6.QtCore import QObject, QThread, Signal, Slot

from errors import VideoTooLarge
from models import ExportRequest
from validator import check_import_size
from video_processing import VideoProcessor


class WorkerManager(QObject):
    """Owns one persistent worker thread per direction.

    At most one export and one import run at a time; a second request of
    the same kind is refused while the first is in flight.
    """
    progress_updated = Signal(float)
    import_progress_updated = Signal(float)
    log_message = Signal(str, str)
    export_finished = Signal(bool, str)
    import_finished = Signal(bool, object)

    _start_export_signal = Signal(object, bool)
    _start_import_signal = Signal(object, bool)
    _cancel_export_signal = Signal()
    _cancel_import_signal = Signal()

    def __init__(self, ffmpeg_path: Path | None = None, temp_root: Path | None = None, parent=None):
        super().__init__(parent)
        self.ffmpeg_path = ffmpeg_path
        self.temp_root = temp_root

        self.export_processor = None
        self.export_thread = None
        self.import_processor = None
        self.import_thread = None

        self.is_exporting = False
        self.is_importing = False

    def setup_persistent_workers(self):
        self.export_processor = VideoProcessor(self.ffmpeg_path, self.temp_root)
        self.export_thread = QThread()
        self.export_processor.moveToThread(self.export_thread)

        self.export_processor.progress_updated.connect(self.progress_updated)
        self.export_processor.log_message.connect(self.log_message)
        self.export_processor.export_finished.connect(self._on_export_finished)
        self._start_export_signal.connect(self.export_processor.start_export)
        self._cancel_export_signal.connect(self.export_processor.cancel)

        self.import_processor = VideoProcessor(self.ffmpeg_path, self.temp_root)
        self.import_thread = QThread()
        self.import_processor.moveToThread(self.import_thread)

        self.import_processor.progress_updated.connect(self.import_progress_updated)
        self.import_processor.log_message.connect(self.log_message)
        self.import_processor.import_finished.connect(self._on_import_finished)
        self._start_import_signal.connect(self.import_processor.start_import)
        self._cancel_import_signal.connect(self.import_processor.cancel)

        self.export_thread.start()
        self.import_thread.start()

    def shutdown_persistent_workers(self):
        self.cancel_all_tasks()
        for thread in (self.export_thread, self.import_thread):
            if thread:
                thread.quit()
                thread.wait(3000)

    def start_export(self, request: ExportRequest, is_verbose: bool = False) -> bool:
        if self.is_exporting:
            self.log_message.emit("[WARNING] An export is already running.", 'app')
            return False
        self.is_exporting = True
        self._start_export_signal.emit(request, is_verbose)
        return True

    def start_import(self, video_path: Path, is_verbose: bool = False) -> bool:
        if self.is_importing:
            self.log_message.emit("[WARNING] An import is already running.", 'app')
            return False
        try:
            check_import_size(video_path)
        except (VideoTooLarge, OSError) as e:
            self.log_message.emit(f"[ERROR] {e}", 'app')
            self.import_finished.emit(False, str(e))
            return False
        self.is_importing = True
        self._start_import_signal.emit(Path(video_path), is_verbose)
        return True

    def cancel_export(self):
        self._cancel_export_signal.emit()

    def cancel_import(self):
        self._cancel_import_signal.emit()

    def cancel_all_tasks(self):
        if self.is_exporting:
            self._cancel_export_signal.emit()
        if self.is_importing:
            self._cancel_import_signal.emit()

    @Slot(bool, str)
    def _on_export_finished(self, success: bool, message: str):
        self.is_exporting = False
        self.export_finished.emit(success, message)

    @Slot(bool, object)
    def _on_import_finished(self, success: bool, result):
        self.is_importing = False
        self.import_finished.emit(success, result)
