# process_supervisor.py
from PySide6.QtCore import QObject, QEventLoop, QProcess, Signal, Slot

import config
from models import PipelineInvocation, ProcessState

class ProcessSupervisor(QObject):
    """Runs a single PipelineInvocation as a QProcess.

    A supervisor moves Idle -> Running -> Succeeded/Failed/Cancelled exactly
    once. Completion is delivered through the ``finished`` signal; callers on
    a worker thread can use ``wait_for_finished`` which spins a local event
    loop, so queued cancel requests and timers keep being served.
    """
    state_changed = Signal(object)
    stdout_received = Signal(object)
    stderr_received = Signal(object)
    finished = Signal(object)

    def __init__(self, invocation: PipelineInvocation, parent=None):
        super().__init__(parent)
        self.invocation = invocation
        self._state = ProcessState.IDLE
        self._cancel_requested = False
        self._exit_code: int | None = None
        self._error_string = ""
        self._start_error = ""
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._process: QProcess | None = None

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    @property
    def stdout_bytes(self) -> bytes:
        return bytes(self._stdout)

    @property
    def stderr_bytes(self) -> bytes:
        return bytes(self._stderr)

    @property
    def start_error(self) -> str:
        return self._start_error

    @property
    def diagnostic_text(self) -> str:
        text = self._stderr.decode('utf-8', errors='replace')
        if self._error_string:
            text = f"{text}\n{self._error_string}" if text else self._error_string
        return text

    def _set_state(self, new_state: ProcessState):
        if self._state == new_state:
            return
        if config.LOG_STATE_TRANSITIONS:
            print(f"[STATE_TRANSITION] {self.invocation.program.name}: From {self._state.name} to {new_state.name}")
        self._state = new_state
        self.state_changed.emit(new_state)

    def start(self):
        if self._state != ProcessState.IDLE:
            raise RuntimeError(
                f"Process already {self._state.name.lower()}; build a new invocation to run it again."
            )

        process = QProcess(self)
        process.setProgram(str(self.invocation.program))
        process.setArguments(list(self.invocation.arguments))
        process.setWorkingDirectory(str(self.invocation.working_directory))
        process.readyReadStandardOutput.connect(self._read_stdout)
        process.readyReadStandardError.connect(self._read_stderr)
        process.started.connect(self._on_started)
        process.finished.connect(self._on_finished)
        process.errorOccurred.connect(self._on_error)
        self._process = process

        self._set_state(ProcessState.RUNNING)
        process.start()

    @Slot()
    def cancel(self) -> bool:
        if self._state != ProcessState.RUNNING:
            return False
        self._cancel_requested = True
        if self._process is not None and self._process.state() == QProcess.Running:
            self._process.kill()
        return True

    def wait_for_finished(self) -> ProcessState:
        if self._state == ProcessState.IDLE:
            raise RuntimeError("Process has not been started.")
        if self._state.is_terminal:
            return self._state

        loop = QEventLoop()
        self.finished.connect(loop.quit)
        try:
            if not self._state.is_terminal:
                loop.exec()
        finally:
            self.finished.disconnect(loop.quit)
        return self._state

    @Slot()
    def _on_started(self):
        # Cancel may land while the process was still starting
        if self._cancel_requested:
            self._process.kill()

    @Slot()
    def _read_stdout(self):
        data = self._process.readAllStandardOutput().data()
        if data:
            self._stdout.extend(data)
            self.stdout_received.emit(data)

    @Slot()
    def _read_stderr(self):
        data = self._process.readAllStandardError().data()
        if data:
            self._stderr.extend(data)
            self.stderr_received.emit(data)

    @Slot(int, QProcess.ExitStatus)
    def _on_finished(self, exit_code: int, exit_status: QProcess.ExitStatus):
        self._read_stdout()
        self._read_stderr()
        if exit_status == QProcess.NormalExit:
            self._exit_code = exit_code
        else:
            self._exit_code = exit_code if exit_code != 0 else -1
            self._error_string = self._process.errorString()

        if self._cancel_requested:
            self._finish(ProcessState.CANCELLED)
        elif exit_status == QProcess.NormalExit and exit_code == 0:
            self._finish(ProcessState.SUCCEEDED)
        else:
            self._finish(ProcessState.FAILED)

    @Slot(QProcess.ProcessError)
    def _on_error(self, error: QProcess.ProcessError):
        # Only a failed start skips the finished signal
        if error != QProcess.FailedToStart:
            return
        self._exit_code = -1
        self._start_error = (f"Failed to start '{self.invocation.program}': "
                             f"{self._process.errorString()}")
        self._error_string = self._start_error
        self._finish(ProcessState.CANCELLED if self._cancel_requested else ProcessState.FAILED)

    def _finish(self, terminal_state: ProcessState):
        if self._state.is_terminal:
            return
        self._set_state(terminal_state)
        self.finished.emit(terminal_state)
