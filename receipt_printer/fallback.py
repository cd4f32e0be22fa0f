# Fallback Pipeline - Ordered retry strategies for Receipt Print Agent
# direct -> defaultFallback -> pdfIntermediate; externalViewer is a separate operation

import logging
import uuid
from typing import List, Optional

from .errors import PdfExportFailed
from .executor import PrintJobExecutor
from .logging_config import get_audit_logger
from .models import Outcome, PrintAttempt, PrintRequest, PrintResult, Strategy
from .printer_resolver import PrinterResolver
from .surface import SurfaceHost
from .temp_resources import TempResourceTracker

logger = logging.getLogger(__name__)
audit = get_audit_logger()

VIEWER_GRACE_SECONDS = 30.0


class FallbackPipeline:
    """Escalates through print strategies until one succeeds"""

    def __init__(self, executor: PrintJobExecutor, resolver: PrinterResolver,
                 tracker: TempResourceTracker, host: SurfaceHost,
                 escalate_to_viewer_on_export_failure: bool = True,
                 viewer_grace_seconds: float = VIEWER_GRACE_SECONDS):
        self.executor = executor
        self.resolver = resolver
        self.tracker = tracker
        self.host = host
        self.escalate_to_viewer_on_export_failure = escalate_to_viewer_on_export_failure
        self.viewer_grace_seconds = viewer_grace_seconds

    async def print_with_fallback(self, request: PrintRequest) -> PrintResult:
        """Run direct, default-printer and PDF-intermediate attempts in order.

        When PDF export fails the request escalates to open_in_viewer, which
        exports again (a fresh surface can get past a timeout or a load
        glitch). Surfaces with no PDF export at all are not escalated.
        """
        attempts: List[PrintAttempt] = []
        printer_name = await self.resolver.resolve_async(request.printer_name)
        logger.info(f"Print request {request.request_id} -> {printer_name or 'Default printer'}")

        attempt = await self.executor.execute(
            request.content, printer_name, request.copies, request.scale_factor,
            request.silent, strategy=Strategy.DIRECT,
        )
        self._record(request.request_id, attempts, attempt)
        if attempt.succeeded:
            return self._succeeded(Strategy.DIRECT, attempts)

        # Retrying the default only makes sense if a specific printer was used
        if printer_name:
            logger.info("Trying fallback with default printer...")
            attempt = await self.executor.execute(
                request.content, None, request.copies, request.scale_factor,
                request.silent, strategy=Strategy.DEFAULT_FALLBACK,
            )
            self._record(request.request_id, attempts, attempt)
            if attempt.succeeded:
                return self._succeeded(Strategy.DEFAULT_FALLBACK, attempts)

        logger.info("Trying PDF-intermediate print...")
        try:
            pdf = await self.executor.export_pdf(request.content)
        except PdfExportFailed as e:
            self._record(request.request_id, attempts, PrintAttempt(
                Strategy.PDF_INTERMEDIATE, Outcome.FAILURE, reason=e.reason, printer_name=printer_name,
            ))
            if self.escalate_to_viewer_on_export_failure and e.retryable:
                logger.info("PDF export failed, escalating to external viewer")
                viewer = await self.open_in_viewer(request.content, owner=request.request_id)
                attempts.extend(viewer.attempts)
                return PrintResult(viewer.success, viewer.strategy_used, attempts, pdf_path=viewer.pdf_path)
            return self._exhausted(request.request_id, attempts)

        # Temp PDF is removed right after this attempt whatever the outcome
        try:
            with self.tracker.temp_file(pdf, suffix='.pdf', owner=request.request_id) as path:
                logger.info(f"PDF saved to: {path}")
                attempt = await self.executor.execute_file(
                    path, printer_name, request.copies, request.scale_factor,
                    request.silent, strategy=Strategy.PDF_INTERMEDIATE,
                )
        except OSError as e:
            attempt = PrintAttempt(Strategy.PDF_INTERMEDIATE, Outcome.FAILURE,
                                   reason=f'Could not write temp PDF: {e}', printer_name=printer_name)
        self._record(request.request_id, attempts, attempt)
        if attempt.succeeded:
            return self._succeeded(Strategy.PDF_INTERMEDIATE, attempts)

        return self._exhausted(request.request_id, attempts)

    async def open_in_viewer(self, markup: str, owner: Optional[str] = None) -> PrintResult:
        """Export a PDF and hand it to the OS default viewer; the operator prints from there"""
        owner = owner or uuid.uuid4().hex
        attempts: List[PrintAttempt] = []
        try:
            pdf = await self.executor.export_pdf(markup)
        except PdfExportFailed as e:
            self._record(owner, attempts, PrintAttempt(Strategy.EXTERNAL_VIEWER, Outcome.FAILURE, reason=e.reason))
            return self._exhausted(owner, attempts)

        try:
            artifact = self.tracker.create(pdf, suffix='.pdf', owner=owner)
        except OSError as e:
            self._record(owner, attempts, PrintAttempt(Strategy.EXTERNAL_VIEWER, Outcome.FAILURE,
                                                       reason=f'Could not write temp PDF: {e}'))
            return self._exhausted(owner, attempts)

        try:
            opened = self.host.open_path(artifact.path)
            reason = None if opened else 'No application available to open PDF'
        except Exception as e:
            opened, reason = False, f'Could not open PDF viewer: {e}'

        if not opened:
            self.tracker.delete(artifact.path)
            self._record(owner, attempts, PrintAttempt(Strategy.EXTERNAL_VIEWER, Outcome.FAILURE, reason=reason))
            return self._exhausted(owner, attempts)

        # The viewer needs the file for a while after opening it
        self.tracker.defer_delete(artifact.path, self.viewer_grace_seconds)
        self._record(owner, attempts, PrintAttempt(Strategy.EXTERNAL_VIEWER, Outcome.SUCCESS))
        logger.info(f"PDF opened with default viewer for printing: {artifact.path}")
        return PrintResult(True, Strategy.EXTERNAL_VIEWER.value, attempts, pdf_path=artifact.path)

    def _record(self, request_id: str, attempts: List[PrintAttempt], attempt: PrintAttempt) -> None:
        attempts.append(attempt)
        target = attempt.printer_name or 'Default printer'
        line = (f"request={request_id} strategy={attempt.strategy.value} "
                f"outcome={attempt.outcome.value} printer={target!r}")
        if attempt.succeeded:
            logger.info(f"{attempt.strategy.value} print succeeded on {target}")
        else:
            line += f" reason={attempt.reason!r}"
            logger.warning(f"{attempt.strategy.value} print failed on {target}: {attempt.reason}")
        audit.info(line)

    @staticmethod
    def _succeeded(strategy: Strategy, attempts: List[PrintAttempt]) -> PrintResult:
        return PrintResult(True, strategy.value, attempts)

    @staticmethod
    def _exhausted(request_id: str, attempts: List[PrintAttempt]) -> PrintResult:
        result = PrintResult(False, None, attempts)
        logger.error(f"All print strategies failed for {request_id}: {result.message}")
        return result
