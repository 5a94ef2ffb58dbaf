# errors.py

class SequenceStitchError(Exception):
    pass

class BinaryNotFound(SequenceStitchError):
    pass

class EmptyInput(SequenceStitchError):
    pass

class ArtifactWriteFailure(SequenceStitchError):
    pass

class SubprocessFailure(SequenceStitchError):
    def __init__(self, message: str, exit_code: int | None = None, diagnostic_text: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.diagnostic_text = diagnostic_text

class ProcessingCanceled(SequenceStitchError):
    def __init__(self, message: str = "Canceled by user."):
        super().__init__(message)

class OutputNotProduced(SequenceStitchError):
    pass

class VideoTooLarge(SequenceStitchError):
    pass

class DocumentRenderError(SequenceStitchError):
    pass
