# Tests for silent print submission and surface cleanup

import asyncio

import pytest

from receipt_printer.errors import PdfExportFailed, RenderValidationFailed
from receipt_printer.models import Outcome, Strategy

MARKUP = '<html><body>receipt</body></html>'


class TestExecute:
    """Every outcome must destroy the surface exactly once"""

    def test_success(self, host, executor):
        attempt = asyncio.run(executor.execute(MARKUP, 'POS-58', copies=2, scale_factor=92))

        assert attempt.outcome == Outcome.SUCCESS
        assert attempt.strategy == Strategy.DIRECT
        assert attempt.printer_name == 'POS-58'
        surface = host.surfaces[0]
        assert surface.markup == MARKUP
        assert surface.close_count == 1
        options = surface.print_calls[0]
        assert options.device_name == 'POS-58'
        assert options.copies == 2
        assert options.scale_factor == 92
        assert options.silent is True

    def test_failure_reason(self, host, executor):
        host.print_results = [(False, 'no printer found')]

        attempt = asyncio.run(executor.execute(MARKUP, 'POS-58'))

        assert attempt.outcome == Outcome.FAILURE
        assert attempt.reason == 'no printer found'
        assert host.surfaces[0].close_count == 1

    def test_load_never_fires_forces_print(self, host, executor):
        host.never_loads = True

        attempt = asyncio.run(executor.execute(MARKUP, None))

        assert attempt.outcome == Outcome.SUCCESS
        assert host.print_log == [None]
        assert host.surfaces[0].close_count == 1

    def test_forced_print_failure_still_closes(self, host, executor):
        host.never_loads = True
        host.print_results = [(False, 'driver error')]

        attempt = asyncio.run(executor.execute(MARKUP, 'POS-58'))

        assert attempt.reason == 'driver error'
        assert host.surfaces[0].close_count == 1

    def test_print_raises(self, host, executor):
        host.print_error = OSError('spooler crashed')

        attempt = asyncio.run(executor.execute(MARKUP, 'POS-58'))

        assert attempt.outcome == Outcome.FAILURE
        assert 'spooler crashed' in attempt.reason
        assert host.surfaces[0].close_count == 1

    def test_print_never_completes(self, host, executor):
        host.print_hangs = True

        attempt = asyncio.run(executor.execute(MARKUP, 'POS-58'))

        assert attempt.outcome == Outcome.FAILURE
        assert 'did not respond' in attempt.reason
        assert host.surfaces[0].close_count == 1

    def test_surface_creation_fails(self, host, executor):
        def broken(width, height):
            raise RuntimeError('GPU process crashed')
        host.create_surface = broken

        attempt = asyncio.run(executor.execute(MARKUP, None))

        assert attempt.outcome == Outcome.FAILURE
        assert 'GPU process crashed' in attempt.reason

    def test_empty_markup_is_rejected_before_printing(self, host, executor):
        with pytest.raises(RenderValidationFailed):
            asyncio.run(executor.execute('  ', 'POS-58'))

        assert host.surfaces == []

    def test_failed_load_is_not_printed(self, host, executor):
        host.load_fails = True

        attempt = asyncio.run(executor.execute(MARKUP, 'POS-58'))

        assert attempt.outcome == Outcome.FAILURE
        assert attempt.reason == 'Content failed to load'
        assert host.print_log == []
        assert host.surfaces[0].close_count == 1

    def test_execute_file(self, host, executor, tmp_path):
        pdf = tmp_path / 'receipt.pdf'
        pdf.write_bytes(b'%PDF')

        attempt = asyncio.run(executor.execute_file(str(pdf), 'POS-58'))

        assert attempt.strategy == Strategy.PDF_INTERMEDIATE
        assert attempt.outcome == Outcome.SUCCESS
        assert host.loaded_files == [(str(pdf), True)]
        assert host.surfaces[0].close_count == 1


class TestExportPdf:
    def test_returns_bytes(self, host, executor):
        pdf = asyncio.run(executor.export_pdf(MARKUP))

        assert pdf.startswith(b'%PDF')
        assert host.surfaces[0].close_count == 1

    def test_export_error(self, host, executor):
        host.pdf_error = RuntimeError('printToPdf unsupported')

        with pytest.raises(PdfExportFailed) as exc_info:
            asyncio.run(executor.export_pdf(MARKUP))

        assert 'printToPdf unsupported' in exc_info.value.reason
        assert host.surfaces[0].close_count == 1

    def test_empty_pdf(self, host, executor):
        host.pdf_bytes = b''

        with pytest.raises(PdfExportFailed):
            asyncio.run(executor.export_pdf(MARKUP))

        assert host.surfaces[0].close_count == 1

    def test_failed_load(self, host, executor):
        host.load_fails = True

        with pytest.raises(PdfExportFailed) as exc_info:
            asyncio.run(executor.export_pdf(MARKUP))

        assert 'Content failed to load' in exc_info.value.reason
        assert exc_info.value.retryable
        assert host.surfaces[0].close_count == 1

    def test_unsupported_export_is_not_retryable(self, host, executor):
        host.pdf_error = NotImplementedError('no PDF backend')

        with pytest.raises(PdfExportFailed) as exc_info:
            asyncio.run(executor.export_pdf(MARKUP))

        assert not exc_info.value.retryable
