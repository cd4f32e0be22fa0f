# Shared fakes for the print pipeline tests

import asyncio
import os
import threading

import pytest

from receipt_printer.errors import JobSubmissionFailed
from receipt_printer.executor import PrintJobExecutor
from receipt_printer.models import PrinterDescriptor
from receipt_printer.printer_resolver import PrinterEnumerationStrategy
from receipt_printer.surface import RenderSurface, SurfaceHost


class FakeSurface(RenderSurface):
    """In-memory rendering surface driven by its FakeHost"""

    def __init__(self, host):
        self.host = host
        self.close_count = 0
        self.markup = None
        self.file_path = None
        self.print_calls = []
        self._loaded = False

    def load_markup(self, markup):
        self.markup = markup
        self._loaded = not self.host.never_loads

    def load_file(self, path):
        self.file_path = path
        self.host.loaded_files.append((path, os.path.exists(path)))
        self._loaded = not self.host.never_loads

    async def wait_until_loaded(self):
        while not self._loaded:
            await asyncio.sleep(0.01)
        if self.host.load_fails:
            raise JobSubmissionFailed('Content failed to load')

    async def print(self, options):
        self.print_calls.append(options)
        self.host.print_log.append(options.device_name)
        if self.host.print_error:
            raise self.host.print_error
        if self.host.print_hangs:
            await asyncio.sleep(10)
        await asyncio.sleep(0)
        if self.host.print_results:
            return self.host.print_results.pop(0)
        return True, None

    async def print_to_pdf(self, options):
        if self.host.pdf_error:
            raise self.host.pdf_error
        return self.host.pdf_bytes

    def close(self):
        self.close_count += 1
        self.host.live -= 1

    @property
    def is_destroyed(self):
        return self.close_count > 0


class FakeHost(SurfaceHost):
    def __init__(self):
        self.surfaces = []
        self.never_loads = False
        self.load_fails = False
        self.print_results = []
        self.print_error = None
        self.print_hangs = False
        self.pdf_bytes = b'%PDF-1.4 fake receipt'
        self.pdf_error = None
        self.print_log = []
        self.loaded_files = []
        self.opened_paths = []
        self.open_result = True
        self.printers = None
        self.live = 0
        self.max_live = 0

    def create_surface(self, width_px, height_px):
        surface = FakeSurface(self)
        self.surfaces.append(surface)
        self.live += 1
        self.max_live = max(self.max_live, self.live)
        return surface

    def get_printers(self):
        if self.printers is None:
            raise NotImplementedError('no native printer API')
        return list(self.printers)

    def open_path(self, path):
        self.opened_paths.append(path)
        return self.open_result


class StaticEnumeration(PrinterEnumerationStrategy):
    name = 'static'

    def __init__(self, names=None, error=None):
        self.names = names or []
        self.error = error
        self.calls = 0
        self.threads = []

    def list_printers(self):
        self.calls += 1
        self.threads.append(threading.current_thread())
        if self.error:
            raise self.error
        return [PrinterDescriptor(name=n) for n in self.names]


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def executor(host):
    return PrintJobExecutor(host, load_timeout=0.2, settle_delay=0.01, submit_timeout=0.2)
