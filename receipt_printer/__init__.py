# Receipt Print Agent
# Silent receipt printing with printer discovery and fallback strategies

__version__ = '0.1.0'

from .errors import (
    PrintPipelineError,
    ResolutionDegraded,
    RenderValidationFailed,
    JobSubmissionFailed,
    PdfExportFailed,
    PipelineExhausted,
)
from .models import (
    PrinterDescriptor,
    PrinterStatus,
    PrintAttempt,
    PrintRequest,
    PrintResult,
    ReceiptData,
    ReceiptItem,
    Strategy,
    Outcome,
    TempArtifact,
)
from .config import PrintConfig, load_config
from .temp_resources import TempResourceTracker
from .printer_resolver import PrinterResolver, PrinterEnumerationStrategy
from .receipt_renderer import ReceiptRenderer, ReceiptLocale, render_receipt
from .surface import RenderSurface, SurfaceHost, PrintOptions, PdfOptions
from .executor import PrintJobExecutor
from .fallback import FallbackPipeline
from .facade import PrintPipelineFacade
from .client import PrintAgentClient

__all__ = [
    'PrintPipelineError',
    'ResolutionDegraded',
    'RenderValidationFailed',
    'JobSubmissionFailed',
    'PdfExportFailed',
    'PipelineExhausted',
    'PrinterDescriptor',
    'PrinterStatus',
    'PrintAttempt',
    'PrintRequest',
    'PrintResult',
    'ReceiptData',
    'ReceiptItem',
    'Strategy',
    'Outcome',
    'TempArtifact',
    'PrintConfig',
    'load_config',
    'TempResourceTracker',
    'PrinterResolver',
    'PrinterEnumerationStrategy',
    'ReceiptRenderer',
    'ReceiptLocale',
    'render_receipt',
    'RenderSurface',
    'SurfaceHost',
    'PrintOptions',
    'PdfOptions',
    'PrintJobExecutor',
    'FallbackPipeline',
    'PrintPipelineFacade',
    'PrintAgentClient',
]
