# Tests for the fallback escalation chain

import asyncio
import os
import time

import pytest

from conftest import StaticEnumeration
from receipt_printer.fallback import FallbackPipeline
from receipt_printer.models import Outcome, PrintRequest, Strategy
from receipt_printer.printer_resolver import PrinterResolver
from receipt_printer.temp_resources import TempResourceTracker

MARKUP = '<html><body>receipt</body></html>'


@pytest.fixture
def tracker(tmp_path):
    tracker = TempResourceTracker(str(tmp_path))
    yield tracker
    tracker.shutdown()


@pytest.fixture
def pipeline(host, executor, tracker):
    resolver = PrinterResolver(native=[StaticEnumeration(['POS-58 (USB001)', 'Office'])], shell=[])
    return FallbackPipeline(executor, resolver, tracker, host, viewer_grace_seconds=0.1)


def strategies(result):
    return [a.strategy for a in result.attempts]


class TestPrintWithFallback:
    """Strict order: direct -> defaultFallback -> pdfIntermediate"""

    def test_direct_success(self, host, pipeline):
        result = asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP, printer_name='POS-58')))

        assert result.success
        assert result.strategy_used == 'direct'
        assert strategies(result) == [Strategy.DIRECT]
        assert host.print_log == ['POS-58 (USB001)']

    def test_default_fallback_after_direct_failure(self, host, pipeline):
        host.print_results = [(False, 'no printer found')]

        result = asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP, printer_name='POS-58 (USB001)')))

        assert result.success
        assert result.strategy_used == 'defaultFallback'
        assert len(result.attempts) == 2
        assert strategies(result) == [Strategy.DIRECT, Strategy.DEFAULT_FALLBACK]
        assert result.attempts[0].reason == 'no printer found'
        assert host.print_log == ['POS-58 (USB001)', None]

    def test_no_default_retry_without_printer_name(self, host, pipeline):
        host.print_results = [(False, 'no default printer')]

        result = asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP)))

        assert result.success
        assert strategies(result) == [Strategy.DIRECT, Strategy.PDF_INTERMEDIATE]
        assert result.strategy_used == 'pdfIntermediate'

    def test_pdf_intermediate_deletes_temp_file(self, host, pipeline, tracker):
        host.print_results = [(False, 'offline'), (False, 'offline')]

        result = asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP, printer_name='POS-58')))

        assert result.success
        assert strategies(result) == [Strategy.DIRECT, Strategy.DEFAULT_FALLBACK, Strategy.PDF_INTERMEDIATE]
        path, existed = host.loaded_files[0]
        assert existed
        assert path.endswith('.pdf')
        assert not os.path.exists(path)
        assert tracker.pending() == []

    def test_exhausted(self, host, pipeline, tracker):
        host.print_results = [(False, 'offline'), (False, 'offline'), (False, 'paper out')]

        result = asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP, printer_name='POS-58')))

        assert not result.success
        assert result.strategy_used is None
        assert result.message == 'paper out'
        assert [a.outcome for a in result.attempts] == [Outcome.FAILURE] * 3
        assert not os.path.exists(host.loaded_files[0][0])
        assert all(s.close_count == 1 for s in host.surfaces)
        assert host.opened_paths == []

    def test_pdf_export_failure_escalates_to_viewer(self, host, pipeline):
        host.print_results = [(False, 'offline'), (False, 'offline')]
        host.pdf_error = RuntimeError('export broke')

        result = asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP, printer_name='POS-58')))

        assert not result.success
        assert strategies(result) == [
            Strategy.DIRECT, Strategy.DEFAULT_FALLBACK, Strategy.PDF_INTERMEDIATE, Strategy.EXTERNAL_VIEWER,
        ]
        assert host.opened_paths == []

    def test_export_failure_without_escalation(self, host, pipeline):
        pipeline.escalate_to_viewer_on_export_failure = False
        host.print_results = [(False, 'offline'), (False, 'offline')]
        host.pdf_error = RuntimeError('export broke')

        result = asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP, printer_name='POS-58')))

        assert not result.success
        assert strategies(result)[-1] == Strategy.PDF_INTERMEDIATE
        assert 'export broke' in result.message

    def test_unsupported_export_skips_viewer(self, host, pipeline):
        host.print_results = [(False, 'offline'), (False, 'offline')]
        host.pdf_error = NotImplementedError('no PDF backend')

        result = asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP, printer_name='POS-58')))

        assert not result.success
        assert strategies(result) == [Strategy.DIRECT, Strategy.DEFAULT_FALLBACK, Strategy.PDF_INTERMEDIATE]
        # direct, defaultFallback, one export
        assert len(host.surfaces) == 3
        assert host.opened_paths == []

    def test_failed_load_falls_through_to_next_stage(self, host, pipeline):
        host.load_fails = True

        result = asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP, printer_name='POS-58')))

        assert not result.success
        assert host.print_log == []
        assert result.attempts[0].reason == 'Content failed to load'

    def test_every_surface_destroyed_once(self, host, pipeline):
        host.print_results = [(False, 'a'), (False, 'b'), (True, None)]

        asyncio.run(pipeline.print_with_fallback(PrintRequest(MARKUP, printer_name='POS-58')))

        # direct, defaultFallback, pdf export, pdf print
        assert len(host.surfaces) == 4
        assert [s.close_count for s in host.surfaces] == [1, 1, 1, 1]
        assert host.live == 0


class TestOpenInViewer:
    def test_opens_and_deletes_after_grace(self, host, pipeline):
        result = asyncio.run(pipeline.open_in_viewer(MARKUP))

        assert result.success
        assert result.strategy_used == 'externalViewer'
        assert host.opened_paths == [result.pdf_path]
        assert os.path.exists(result.pdf_path)

        deadline = time.time() + 2
        while os.path.exists(result.pdf_path) and time.time() < deadline:
            time.sleep(0.02)
        assert not os.path.exists(result.pdf_path)

    def test_viewer_unavailable(self, host, pipeline, tracker):
        host.open_result = False

        result = asyncio.run(pipeline.open_in_viewer(MARKUP))

        assert not result.success
        assert result.attempts[0].strategy == Strategy.EXTERNAL_VIEWER
        assert not os.path.exists(host.opened_paths[0])
        assert tracker.pending() == []
