# Printer Resolver - Printer discovery and name matching for Receipt Print Agent
# Native enumeration -> OS shell command -> unresolved passthrough

import asyncio
import json
import logging
import os
import platform
import re
import subprocess
import sys
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from .errors import ResolutionDegraded
from .models import PrinterDescriptor, PrinterStatus

# Windows spooler - optional (pywin32)
WIN32_AVAILABLE = False
if sys.platform == 'win32':
    try:
        import win32print
        WIN32_AVAILABLE = True
    except ImportError:
        pass

logger = logging.getLogger(__name__)

SHELL_TIMEOUT_SECONDS = 5

# Domain keywords: a requested "pos"/"thermal" printer matches any candidate sharing the keyword
DOMAIN_KEYWORDS = ('pos', 'thermal')

_PS_NAME_LINE = re.compile(r'^\s*Name\s*:\s*(.+?)\s*$')
_LPSTAT_PRINTER_LINE = re.compile(r'^printer\s+(\S+)\s*(.*)$')
_LPSTAT_DEFAULT_LINE = re.compile(r'^system default destination:\s*(\S+)')

# Win32_Printer / Get-Printer status codes
_PS_IDLE_CODES = {0, 3}
_PS_OFFLINE_CODES = {7}
_WIN32_STATUS_OFFLINE = 0x80
_WIN32_ATTRIBUTE_WORK_OFFLINE = 0x400


def parse_powershell_printers(stdout: str) -> List[PrinterDescriptor]:
    """Parse `Get-Printer | ConvertTo-Json` output; never raises"""
    text = (stdout or '').strip()
    if not text:
        return []

    try:
        data = json.loads(text)
    except ValueError:
        return _parse_powershell_text(text)

    # ConvertTo-Json emits a bare object for a single printer
    entries = data if isinstance(data, list) else [data]
    printers = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            continue
        name = str(entry.get('Name') or f'Printer {index + 1}').strip()
        printers.append(PrinterDescriptor(
            name=name,
            status=_powershell_status(entry.get('PrinterStatus')),
            is_default=False,
            description=entry.get('DriverName') or None,
        ))
    return _mark_first_default(printers)


def _parse_powershell_text(text: str) -> List[PrinterDescriptor]:
    """Fallback for Format-List style output ("Name : POS-58")"""
    printers = []
    for line in text.splitlines():
        match = _PS_NAME_LINE.match(line)
        if match:
            printers.append(PrinterDescriptor(name=match.group(1), status=PrinterStatus.IDLE))
    return _mark_first_default(printers)


def _powershell_status(value) -> PrinterStatus:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('normal', 'idle'):
            return PrinterStatus.IDLE
        if lowered == 'offline':
            return PrinterStatus.OFFLINE
        return PrinterStatus.UNKNOWN
    if value in _PS_IDLE_CODES:
        return PrinterStatus.IDLE
    if value in _PS_OFFLINE_CODES:
        return PrinterStatus.OFFLINE
    return PrinterStatus.UNKNOWN


def parse_lpstat_printers(stdout: str) -> List[PrinterDescriptor]:
    """Parse `lpstat -p -d` output; never raises"""
    printers = []
    default_name = None
    for line in (stdout or '').splitlines():
        line = line.strip()
        default_match = _LPSTAT_DEFAULT_LINE.match(line)
        if default_match:
            default_name = default_match.group(1)
            continue
        match = _LPSTAT_PRINTER_LINE.match(line)
        if not match:
            continue
        name, rest = match.groups()
        rest = rest.lower()
        if 'disabled' in rest:
            status = PrinterStatus.OFFLINE
        elif 'is idle' in rest:
            status = PrinterStatus.IDLE
        else:
            status = PrinterStatus.UNKNOWN
        printers.append(PrinterDescriptor(name=name, status=status))

    if default_name and any(p.name == default_name for p in printers):
        for p in printers:
            p.is_default = p.name == default_name
        return printers
    return _mark_first_default(printers)


def _mark_first_default(printers: List[PrinterDescriptor]) -> List[PrinterDescriptor]:
    if printers and not any(p.is_default for p in printers):
        printers[0].is_default = True
    return printers


def _dedupe(printers: Sequence[PrinterDescriptor]) -> List[PrinterDescriptor]:
    seen = set()
    unique = []
    for p in printers:
        if p.name and p.name not in seen:
            seen.add(p.name)
            unique.append(p)
    return unique


def match_printer(requested: str, printers: Sequence[PrinterDescriptor]) -> Optional[str]:
    """Pick the best printer name for a request, or None if nothing matches"""
    for p in printers:
        if p.name == requested:
            return p.name

    wanted = requested.lower()
    for p in printers:
        candidate = p.name.lower()
        if wanted in candidate or candidate in wanted:
            return p.name
        if any(k in wanted and k in candidate for k in DOMAIN_KEYWORDS):
            return p.name
    return None


class PrinterEnumerationStrategy(ABC):
    """One mechanism for listing printers"""

    name = 'strategy'

    @abstractmethod
    def list_printers(self) -> List[PrinterDescriptor]:
        """Return printers; raise if the mechanism is unavailable"""


class HostEnumeration(PrinterEnumerationStrategy):
    """Printers reported by the application surface's print API"""

    name = 'host'

    def __init__(self, host):
        self.host = host

    def list_printers(self) -> List[PrinterDescriptor]:
        return list(self.host.get_printers())


class Win32SpoolerEnumeration(PrinterEnumerationStrategy):
    """Windows spooler via pywin32"""

    name = 'win32-spooler'

    def list_printers(self) -> List[PrinterDescriptor]:
        if not WIN32_AVAILABLE:
            raise ResolutionDegraded('pywin32 not installed')

        flags = win32print.PRINTER_ENUM_LOCAL | win32print.PRINTER_ENUM_CONNECTIONS
        try:
            default_name = win32print.GetDefaultPrinter()
        except Exception:
            default_name = None

        printers = []
        for info in win32print.EnumPrinters(flags, None, 2):
            status_bits = info.get('Status', 0)
            offline = (status_bits & _WIN32_STATUS_OFFLINE) or \
                (info.get('Attributes', 0) & _WIN32_ATTRIBUTE_WORK_OFFLINE)
            if offline:
                status = PrinterStatus.OFFLINE
            elif status_bits == 0:
                status = PrinterStatus.IDLE
            else:
                status = PrinterStatus.UNKNOWN
            printers.append(PrinterDescriptor(
                name=info['pPrinterName'],
                status=status,
                is_default=info['pPrinterName'] == default_name,
                description=info.get('pComment') or info.get('pDriverName') or None,
            ))
        return _mark_first_default(printers)


class ShellEnumeration(PrinterEnumerationStrategy):
    """Runs an OS command and parses its stdout"""

    command: List[str] = []

    def __init__(self, timeout: float = SHELL_TIMEOUT_SECONDS):
        self.timeout = timeout

    def run(self) -> str:
        env = dict(os.environ, LC_ALL='C')
        completed = subprocess.run(
            self.command,
            capture_output=True,
            text=True,
            timeout=self.timeout,
            env=env,
        )
        if completed.returncode != 0 and not completed.stdout.strip():
            raise ResolutionDegraded(
                f"{self.command[0]} exited with {completed.returncode}: {completed.stderr.strip()}"
            )
        return completed.stdout

    @abstractmethod
    def parse(self, stdout: str) -> List[PrinterDescriptor]:
        pass

    def list_printers(self) -> List[PrinterDescriptor]:
        stdout = self.run()
        try:
            return self.parse(stdout)
        except Exception as e:
            logger.warning(f"Could not parse {self.name} output: {e}")
            return []


class PowerShellEnumeration(ShellEnumeration):
    name = 'powershell'
    command = [
        'powershell', '-NoProfile', '-Command',
        'Get-Printer | Select-Object Name, PrinterStatus, DriverName | ConvertTo-Json',
    ]

    def parse(self, stdout: str) -> List[PrinterDescriptor]:
        return parse_powershell_printers(stdout)


class LpstatEnumeration(ShellEnumeration):
    name = 'lpstat'
    command = ['lpstat', '-p', '-d']

    def parse(self, stdout: str) -> List[PrinterDescriptor]:
        return parse_lpstat_printers(stdout)


def default_shell_strategies(system: Optional[str] = None) -> List[PrinterEnumerationStrategy]:
    system = system or platform.system()
    if system == 'Windows':
        return [PowerShellEnumeration()]
    return [LpstatEnumeration()]


def default_native_strategies(host=None) -> List[PrinterEnumerationStrategy]:
    native = []
    if host is not None:
        native.append(HostEnumeration(host))
    if WIN32_AVAILABLE:
        native.append(Win32SpoolerEnumeration())
    return native


class PrinterResolver:
    """Discovers printers and maps a requested name to an OS printer name"""

    def __init__(self, native: Optional[Sequence[PrinterEnumerationStrategy]] = None,
                 shell: Optional[Sequence[PrinterEnumerationStrategy]] = None):
        self.native = list(native) if native is not None else default_native_strategies()
        self.shell = list(shell) if shell is not None else default_shell_strategies()

    @classmethod
    def for_host(cls, host) -> 'PrinterResolver':
        return cls(native=default_native_strategies(host), shell=default_shell_strategies())

    def discover(self) -> List[PrinterDescriptor]:
        """Enumerate printers fresh; failures yield an empty list"""
        printers = self._discover_native()
        if printers is None:
            printers = self._discover_shell()
        return printers

    async def discover_async(self) -> List[PrinterDescriptor]:
        """Same as discover(), with shell commands run on a worker thread"""
        printers = self._discover_native()
        if printers is None:
            loop = asyncio.get_running_loop()
            printers = await loop.run_in_executor(None, self._discover_shell)
        return printers

    def resolve(self, requested_name: Optional[str]) -> Optional[str]:
        """Return the printer name to hand the OS, or None for the system default"""
        if not requested_name or not requested_name.strip():
            logger.debug("No specific printer requested, using default")
            return None
        try:
            printers = self.discover()
        except Exception as e:
            logger.warning(f"Error finding printer {requested_name!r}: {e}")
            return requested_name
        return self._match(requested_name, printers)

    async def resolve_async(self, requested_name: Optional[str]) -> Optional[str]:
        if not requested_name or not requested_name.strip():
            logger.debug("No specific printer requested, using default")
            return None
        try:
            printers = await self.discover_async()
        except Exception as e:
            logger.warning(f"Error finding printer {requested_name!r}: {e}")
            return requested_name
        return self._match(requested_name, printers)

    def _discover_native(self) -> Optional[List[PrinterDescriptor]]:
        # In-process APIs; any list, even empty, is authoritative
        for strategy in self.native:
            try:
                printers = strategy.list_printers()
            except Exception as e:
                logger.info(f"Native enumeration '{strategy.name}' unavailable: {e}")
                continue
            printers = _dedupe(printers)
            logger.info(f"Detected {len(printers)} printers via {strategy.name}")
            return printers
        return None

    def _discover_shell(self) -> List[PrinterDescriptor]:
        for strategy in self.shell:
            try:
                printers = _dedupe(strategy.list_printers())
            except Exception as e:
                logger.warning(f"System command '{strategy.name}' failed: {e}")
                continue
            logger.info(f"Detected {len(printers)} printers from system command {strategy.name}")
            return printers

        logger.warning("Could not detect printers automatically; printer names will pass through unresolved")
        return []

    @staticmethod
    def _match(requested_name: str, printers: List[PrinterDescriptor]) -> str:
        if not printers:
            logger.warning(f"No printers enumerated, using requested name {requested_name!r}")
            return requested_name

        logger.debug(f"Available printers: {[p.name for p in printers]}")
        match = match_printer(requested_name, printers)
        if match is None:
            # Some printers accept jobs without showing up in enumeration
            logger.warning(f"No matching printer found for {requested_name!r}, trying requested name anyway")
            return requested_name
        if match != requested_name:
            logger.info(f"Resolved printer {requested_name!r} -> {match!r}")
        return match
