# Print Pipeline Facade - Single entry point for Receipt Print Agent
# One request runs through every fallback stage before the next one starts

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from .config import PrintConfig
from .errors import PrintPipelineError, RenderValidationFailed
from .executor import PrintJobExecutor
from .fallback import FallbackPipeline
from .models import PrinterDescriptor, PrintRequest, PrintResult, ReceiptData, Strategy
from .printer_resolver import PrinterResolver
from .receipt_renderer import ReceiptRenderer
from .surface import SurfaceHost
from .temp_resources import TempResourceTracker

logger = logging.getLogger(__name__)

SUCCESS_MESSAGES = {
    Strategy.DIRECT.value: 'Print sent to printer successfully',
    Strategy.DEFAULT_FALLBACK.value: 'Print sent via default printer',
    Strategy.PDF_INTERMEDIATE.value: 'Print sent via PDF rendering',
    Strategy.EXTERNAL_VIEWER.value: 'PDF opened with default viewer for printing',
}

THERMAL_NAME_HINTS = ('pos-58', 'pos58', 'thermal')
THERMAL_DESCRIPTION_HINTS = ('pos', 'thermal')


class PrintPipelineFacade:
    """Composes resolver, renderer, executor and fallback pipeline"""

    def __init__(self, host: SurfaceHost, config: Optional[PrintConfig] = None,
                 resolver: Optional[PrinterResolver] = None,
                 executor: Optional[PrintJobExecutor] = None,
                 tracker: Optional[TempResourceTracker] = None,
                 renderer: Optional[ReceiptRenderer] = None):
        self.host = host
        self.config = config or PrintConfig()
        cfg = self.config

        self.resolver = resolver or PrinterResolver.for_host(host)
        self.executor = executor or PrintJobExecutor(
            host,
            load_timeout=cfg.load_timeout,
            settle_delay=cfg.settle_delay,
            submit_timeout=cfg.submit_timeout,
            surface_width_px=cfg.surface_width_px,
            surface_height_px=cfg.surface_height_px,
            page_width_mm=cfg.page_width_mm,
            page_height_mm=cfg.page_height_mm,
        )
        self.tracker = tracker or TempResourceTracker(cfg.temp_dir, grace_seconds=cfg.viewer_grace_seconds)
        self.renderer = renderer or ReceiptRenderer()
        self.pipeline = FallbackPipeline(
            self.executor, self.resolver, self.tracker, host,
            escalate_to_viewer_on_export_failure=cfg.escalate_to_viewer_on_export_failure,
            viewer_grace_seconds=cfg.viewer_grace_seconds,
        )
        self._lock = asyncio.Lock()
        self.requests_handled = 0

    async def submit(self, request: PrintRequest) -> PrintResult:
        """Run one request to a terminal result; concurrent callers queue here"""
        async with self._lock:
            result = await self.pipeline.print_with_fallback(request)
            self.requests_handled += 1
            return result

    async def list_printers(self) -> Dict[str, Any]:
        printers = await self.resolver.discover_async()
        for p in printers:
            logger.info(f"  {p.name} (status: {p.status.value}{', default' if p.is_default else ''})")

        return {'printers': [p.to_dict() for p in printers]}

    async def find_thermal_printer(self) -> Optional[str]:
        """Name of the first POS-58/thermal printer, matched by name then description"""
        printers = await self.resolver.discover_async()
        thermal = _find_thermal(printers)
        if thermal:
            logger.info(f"Found POS-58/Thermal printer: {thermal.name} Status: {thermal.status.value}")
            return thermal.name
        logger.info("No POS-58/Thermal printer found, using default printer")
        return None

    async def print_direct(self, markup: str, printer_name: Optional[str] = None,
                           copies: int = 1, scale_factor: Optional[int] = None) -> Dict[str, Any]:
        logger.info(f"Direct print requested for {printer_name or 'Default printer'}")
        try:
            request = self._request(markup, printer_name, copies, scale_factor, silent=True)
        except RenderValidationFailed as e:
            return self._failure(e)
        result = await self.submit(request)
        return self._message_response(result)

    async def print_receipt_content(self, markup: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        options = options or {}
        logger.info("Print content requested")
        try:
            request = self._request(
                markup,
                _option(options, 'printer_name', 'printerName'),
                _option(options, 'copies', default=1),
                _option(options, 'scale_factor', 'scaleFactor'),
                silent=_option(options, 'silent', default=True),
            )
        except RenderValidationFailed as e:
            return self._failure(e)
        result = await self.submit(request)
        return self._message_response(result)

    async def print_receipt(self, receipt_data: Union[ReceiptData, Dict[str, Any], None],
                            options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        options = options or {}
        logger.info("Print receipt requested")
        try:
            markup = self._markup_for(receipt_data, options)
            printer_name = _option(options, 'printer_name', 'printerName') or self.config.printer_name
            if not printer_name:
                printer_name = await self.find_thermal_printer()
            request = self._request(
                markup,
                printer_name,
                _option(options, 'copies', default=1),
                _option(options, 'scale_factor', 'scaleFactor'),
                silent=True,
            )
        except RenderValidationFailed as e:
            return self._failure(e)

        result = await self.submit(request)
        response = {'success': result.success, 'method': result.strategy_used, 'result': result.to_dict()}
        if not result.success:
            response['error'] = result.message
        return response

    async def print_receipt_pdf(self, receipt_data: Union[ReceiptData, Dict[str, Any], None],
                                options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        logger.info("PDF-based print requested")
        try:
            markup = self._markup_for(receipt_data, options or {})
        except RenderValidationFailed as e:
            return self._failure(e)

        async with self._lock:
            result = await self.pipeline.open_in_viewer(markup)
            self.requests_handled += 1

        response = {'success': result.success, 'method': 'pdf-viewer', 'pdfPath': result.pdf_path}
        if not result.success:
            response['error'] = result.message
        return response

    def shutdown(self) -> None:
        self.tracker.shutdown()

    def _request(self, markup, printer_name, copies, scale_factor, silent) -> PrintRequest:
        return PrintRequest(
            content=markup,
            printer_name=printer_name or self.config.printer_name,
            copies=copies or self.config.copies,
            scale_factor=scale_factor or self.config.scale_factor,
            silent=silent,
        )

    def _markup_for(self, receipt_data, options: Dict[str, Any]) -> str:
        if isinstance(receipt_data, dict):
            receipt_data = ReceiptData.from_dict(receipt_data)
        if receipt_data is not None:
            return self.renderer.render(receipt_data)
        content = options.get('content')
        if not content:
            raise RenderValidationFailed('No content provided for printing')
        return content

    @staticmethod
    def _message_response(result: PrintResult) -> Dict[str, Any]:
        if result.success:
            return {'success': True, 'message': SUCCESS_MESSAGES.get(result.strategy_used, result.message)}
        return {'success': False, 'message': result.message, 'error': result.message}

    @staticmethod
    def _failure(error: PrintPipelineError) -> Dict[str, Any]:
        logger.error(f"Print rejected: {error}")
        return {'success': False, 'message': str(error), 'error': str(error)}


def _find_thermal(printers: List[PrinterDescriptor]) -> Optional[PrinterDescriptor]:
    for p in printers:
        if any(h in p.name.lower() for h in THERMAL_NAME_HINTS):
            return p
    for p in printers:
        description = (p.description or '').lower()
        if any(h in description for h in THERMAL_DESCRIPTION_HINTS):
            return p
    return None


def _option(options: Dict[str, Any], key: str, alt_key: Optional[str] = None, default=None):
    if options.get(key) is not None:
        return options[key]
    if alt_key and options.get(alt_key) is not None:
        return options[alt_key]
    return default
