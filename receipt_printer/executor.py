# Print Job Executor - Silent print submission through an off-screen surface
# The surface is destroyed on every exit path: success, failure, exception, timeout

import asyncio
import logging
from typing import Callable, Optional

from .errors import JobSubmissionFailed, PdfExportFailed, RenderValidationFailed
from .models import Outcome, PrintAttempt, Strategy
from .surface import PdfOptions, PrintOptions, RenderSurface, SurfaceHost

logger = logging.getLogger(__name__)

LOAD_TIMEOUT_SECONDS = 5.0
# Engines report load-complete before layout/paint settles
SETTLE_DELAY_SECONDS = 1.0
SUBMIT_TIMEOUT_SECONDS = 5.0


class PrintJobExecutor:
    """Loads content into a headless surface and prints it silently"""

    def __init__(self, host: SurfaceHost,
                 load_timeout: float = LOAD_TIMEOUT_SECONDS,
                 settle_delay: float = SETTLE_DELAY_SECONDS,
                 submit_timeout: float = SUBMIT_TIMEOUT_SECONDS,
                 surface_width_px: int = 250,
                 surface_height_px: int = 800,
                 page_width_mm: float = 58.0,
                 page_height_mm: float = 200.0):
        self.host = host
        self.load_timeout = load_timeout
        self.settle_delay = settle_delay
        self.submit_timeout = submit_timeout
        self.surface_size = (surface_width_px, surface_height_px)
        self.page_size = (page_width_mm, page_height_mm)

    def print_options(self, printer_name: Optional[str], copies: int = 1,
                      scale_factor: int = 85, silent: bool = True) -> PrintOptions:
        return PrintOptions(
            device_name=printer_name or None,
            silent=silent,
            copies=copies,
            scale_factor=scale_factor,
            page_width_mm=self.page_size[0],
            page_height_mm=self.page_size[1],
        )

    async def execute(self, markup: str, printer_name: Optional[str] = None, copies: int = 1,
                      scale_factor: int = 85, silent: bool = True,
                      strategy: Strategy = Strategy.DIRECT) -> PrintAttempt:
        """Print HTML markup; returns the attempt record, never raises for printer errors"""
        if not isinstance(markup, str) or not markup.strip():
            raise RenderValidationFailed('Empty content provided for printing')
        options = self.print_options(printer_name, copies, scale_factor, silent)
        return await self._run(lambda surface: surface.load_markup(markup), options, strategy)

    async def execute_file(self, path: str, printer_name: Optional[str] = None, copies: int = 1,
                           scale_factor: int = 85, silent: bool = True,
                           strategy: Strategy = Strategy.PDF_INTERMEDIATE) -> PrintAttempt:
        """Print a file (PDF) loaded into its own surface"""
        options = self.print_options(printer_name, copies, scale_factor, silent)
        return await self._run(lambda surface: surface.load_file(path), options, strategy)

    async def export_pdf(self, markup: str) -> bytes:
        """Render markup to PDF bytes; raises PdfExportFailed"""
        if not isinstance(markup, str) or not markup.strip():
            raise RenderValidationFailed('Empty content provided for PDF export')

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.load_timeout
        surface = None
        try:
            surface = self.host.create_surface(*self.surface_size)
            surface.load_markup(markup)
            await self._wait_for_content(surface, deadline)
            pdf = await asyncio.wait_for(
                surface.print_to_pdf(PdfOptions(page_width_mm=self.page_size[0],
                                                page_height_mm=self.page_size[1])),
                timeout=self.submit_timeout,
            )
        except PdfExportFailed:
            raise
        except asyncio.TimeoutError:
            raise PdfExportFailed(f'PDF export did not finish within {self.submit_timeout}s')
        except NotImplementedError as e:
            raise PdfExportFailed(f'PDF export not supported: {e}', retryable=False) from e
        except Exception as e:
            raise PdfExportFailed(f'PDF export failed: {e}') from e
        finally:
            self._destroy(surface)

        if not pdf:
            raise PdfExportFailed('PDF export produced no data')
        logger.info(f"PDF generated, size: {len(pdf)} bytes")
        return bytes(pdf)

    async def _run(self, load: Callable[[RenderSurface], None], options: PrintOptions,
                   strategy: Strategy) -> PrintAttempt:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.load_timeout
        target = options.describe_target()
        surface = None
        try:
            surface = self.host.create_surface(*self.surface_size)
            load(surface)
            await self._wait_for_content(surface, deadline)

            logger.debug(f"Submitting print job to {target} ({strategy.value})")
            success, reason = await asyncio.wait_for(surface.print(options), timeout=self.submit_timeout)
            if success:
                return PrintAttempt(strategy, Outcome.SUCCESS, printer_name=options.device_name)
            return PrintAttempt(strategy, Outcome.FAILURE, reason=reason or 'Print failed',
                                printer_name=options.device_name)
        except asyncio.TimeoutError:
            reason = f'Print subsystem did not respond within {self.submit_timeout}s'
        except JobSubmissionFailed as e:
            reason = e.reason
        except Exception as e:
            logger.exception(f"Print exception on {target}")
            reason = str(e) or type(e).__name__
        finally:
            self._destroy(surface)

        return PrintAttempt(strategy, Outcome.FAILURE, reason=reason, printer_name=options.device_name)

    async def _wait_for_content(self, surface: RenderSurface, deadline: float) -> bool:
        """Wait for load plus settle delay, never past the deadline"""
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(surface.wait_until_loaded(), timeout=max(0.0, deadline - loop.time()))
        except asyncio.TimeoutError:
            logger.warning("Print timeout - forcing print without waiting for content load")
            return False

        settle = min(self.settle_delay, max(0.0, deadline - loop.time()))
        if settle > 0:
            await asyncio.sleep(settle)
        return True

    @staticmethod
    def _destroy(surface: Optional[RenderSurface]) -> None:
        if surface is None or surface.is_destroyed:
            return
        try:
            surface.close()
        except Exception as e:
            logger.warning(f"Failed to close rendering surface: {e}")
