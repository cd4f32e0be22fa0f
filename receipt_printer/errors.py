# Errors - Failure taxonomy for Receipt Print Agent
# Low-level OS/driver errors are mapped to these before reaching the caller


class PrintPipelineError(Exception):
    """Base class for all print pipeline errors"""


class ResolutionDegraded(PrintPipelineError):
    """Printer enumeration unavailable or empty; the pipeline carries on"""


class RenderValidationFailed(PrintPipelineError, ValueError):
    """Empty markup or missing receipt fields; rejected before printing"""


class JobSubmissionFailed(PrintPipelineError):
    """The print subsystem rejected the job (offline, paper-out, driver error)"""

    def __init__(self, reason: str, printer_name: str = None):
        super().__init__(reason)
        self.reason = reason
        self.printer_name = printer_name


class PdfExportFailed(JobSubmissionFailed):
    """The rendering surface could not produce a PDF"""

    def __init__(self, reason: str, printer_name: str = None, retryable: bool = True):
        super().__init__(reason, printer_name)
        # False when the surface has no PDF export at all
        self.retryable = retryable


class PipelineExhausted(PrintPipelineError):
    """Every fallback stage failed"""

    def __init__(self, last_reason: str, attempts=None):
        super().__init__(last_reason)
        self.last_reason = last_reason
        self.attempts = list(attempts or [])
