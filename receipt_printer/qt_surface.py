# Qt Surface - QtWebEngine-backed rendering surface for Receipt Print Agent
# Qt objects must live on the thread that owns the QApplication (the asyncio loop thread)

import asyncio
import logging
import sys
from typing import List, Optional, Tuple

from PyQt6.QtCore import QMarginsF, QSizeF, Qt, QUrl
from PyQt6.QtGui import QDesktopServices, QPageLayout, QPageSize
from PyQt6.QtPrintSupport import QPrintDialog, QPrinter, QPrinterInfo
from PyQt6.QtWebEngineCore import QWebEngineSettings
from PyQt6.QtWebEngineWidgets import QWebEngineView
from PyQt6.QtWidgets import QApplication

from .errors import JobSubmissionFailed
from .models import PrinterDescriptor, PrinterStatus
from .surface import PdfOptions, PrintOptions, RenderSurface, SurfaceHost

logger = logging.getLogger(__name__)

# How often the Qt event queue is pumped while awaiting a signal
POLL_INTERVAL = 0.05


def _page_layout(width_mm: float, height_mm: float, landscape: bool = False) -> QPageLayout:
    size = QPageSize(QSizeF(width_mm, height_mm), QPageSize.Unit.Millimeter, 'Receipt')
    orientation = QPageLayout.Orientation.Landscape if landscape else QPageLayout.Orientation.Portrait
    return QPageLayout(size, orientation, QMarginsF(0, 0, 0, 0), QPageLayout.Unit.Millimeter)


async def _pump_until(predicate) -> None:
    """Process Qt events until predicate() is true; callers bound this with a timeout"""
    while not predicate():
        QApplication.processEvents()
        await asyncio.sleep(POLL_INTERVAL)


class QtWebEngineSurface(RenderSurface):
    """Hidden QWebEngineView used for one print attempt"""

    def __init__(self, width_px: int, height_px: int):
        self._view = QWebEngineView()
        self._view.setAttribute(Qt.WidgetAttribute.WA_DontShowOnScreen, True)
        self._view.resize(width_px, height_px)
        settings = self._view.settings()
        settings.setAttribute(QWebEngineSettings.WebAttribute.PluginsEnabled, True)
        settings.setAttribute(QWebEngineSettings.WebAttribute.PdfViewerEnabled, True)
        self._view.loadFinished.connect(self._on_load_finished)
        self._view.printFinished.connect(self._on_print_finished)
        self._view.show()

        self._loaded = False
        self._load_ok = True
        self._print_result: Optional[bool] = None
        self._printer: Optional[QPrinter] = None
        self._destroyed = False

    def _on_load_finished(self, ok: bool) -> None:
        self._loaded = True
        self._load_ok = ok
        if not ok:
            logger.warning("Rendering surface reported a failed load")

    def _on_print_finished(self, ok: bool) -> None:
        self._print_result = ok

    def load_markup(self, markup: str) -> None:
        self._loaded = False
        self._load_ok = True
        self._view.setHtml(markup)

    def load_file(self, path: str) -> None:
        self._loaded = False
        self._load_ok = True
        self._view.load(QUrl.fromLocalFile(path))

    async def wait_until_loaded(self) -> None:
        await _pump_until(lambda: self._loaded)
        if not self._load_ok:
            raise JobSubmissionFailed('Content failed to load')

    async def print(self, options: PrintOptions) -> Tuple[bool, Optional[str]]:
        printer = QPrinter(QPrinter.PrinterMode.HighResolution)
        if options.device_name:
            if QPrinterInfo.printerInfo(options.device_name).isNull():
                return False, f"No printer found with name {options.device_name!r}"
            printer.setPrinterName(options.device_name)
        elif QPrinterInfo.defaultPrinter().isNull():
            return False, 'No default printer configured'

        printer.setCopyCount(options.copies)
        printer.setColorMode(QPrinter.ColorMode.Color if options.color else QPrinter.ColorMode.GrayScale)
        printer.setPageLayout(_page_layout(options.page_width_mm, options.page_height_mm, options.landscape))
        printer.setDocName('Receipt')

        if not printer.isValid():
            return False, f"Printer {options.describe_target()!r} is not available"

        if not options.silent:
            dialog = QPrintDialog(printer)
            if dialog.exec() != QPrintDialog.DialogCode.Accepted:
                return False, 'Print cancelled by user'

        self._view.setZoomFactor(options.scale_factor / 100.0)
        self._set_backgrounds(options.print_background)
        self._print_result = None
        # QPrinter must outlive the asynchronous print
        self._printer = printer
        self._view.print(printer)
        await _pump_until(lambda: self._print_result is not None)

        if self._print_result:
            return True, None
        return False, f"Print job rejected by {options.describe_target()}"

    async def print_to_pdf(self, options: PdfOptions) -> bytes:
        result = {}

        def on_pdf(data) -> None:
            result['data'] = bytes(data)

        layout = _page_layout(options.page_width_mm, options.page_height_mm, options.landscape)
        self._set_backgrounds(options.print_background)
        self._view.page().printToPdf(on_pdf, layout)
        await _pump_until(lambda: 'data' in result)
        return result['data']

    def _set_backgrounds(self, enabled: bool) -> None:
        self._view.settings().setAttribute(QWebEngineSettings.WebAttribute.PrintElementBackgrounds, enabled)

    def close(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self._view.close()
        self._view.deleteLater()
        self._printer = None

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed


class QtSurfaceHost(SurfaceHost):
    """Application surface backed by the running QApplication"""

    def __init__(self, app: Optional[QApplication] = None):
        self.app = app or QApplication.instance() or QApplication(sys.argv)

    def create_surface(self, width_px: int, height_px: int) -> RenderSurface:
        return QtWebEngineSurface(width_px, height_px)

    def get_printers(self) -> List[PrinterDescriptor]:
        printers = []
        for info in QPrinterInfo.availablePrinters():
            state = info.state()
            if state == QPrinter.PrinterState.Idle:
                status = PrinterStatus.IDLE
            elif state in (QPrinter.PrinterState.Error, QPrinter.PrinterState.Aborted):
                status = PrinterStatus.OFFLINE
            else:
                status = PrinterStatus.UNKNOWN
            printers.append(PrinterDescriptor(
                name=info.printerName(),
                status=status,
                is_default=info.isDefault(),
                description=info.description() or None,
            ))
        return printers

    def open_path(self, path: str) -> bool:
        return QDesktopServices.openUrl(QUrl.fromLocalFile(path))
