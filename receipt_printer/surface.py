# Surface - Off-screen rendering surface interface for Receipt Print Agent
# The facade gets a SurfaceHost at construction; executors create surfaces from it

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .models import PrinterDescriptor


@dataclass(frozen=True)
class PrintOptions:
    """Options for one silent print submission"""
    device_name: Optional[str] = None
    silent: bool = True
    copies: int = 1
    scale_factor: int = 85
    print_background: bool = True
    color: bool = False
    landscape: bool = False
    page_width_mm: float = 58.0
    page_height_mm: float = 200.0

    def describe_target(self) -> str:
        return self.device_name or 'Default printer'


@dataclass(frozen=True)
class PdfOptions:
    page_width_mm: float = 58.0
    page_height_mm: float = 200.0
    print_background: bool = False
    landscape: bool = False


class RenderSurface(ABC):
    """A headless renderable context owned by exactly one print attempt"""

    @abstractmethod
    def load_markup(self, markup: str) -> None:
        """Start loading HTML; completion is signalled via wait_until_loaded"""

    @abstractmethod
    def load_file(self, path: str) -> None:
        """Start loading a local file (PDF)"""

    @abstractmethod
    async def wait_until_loaded(self) -> None:
        """Return once the content is loaded; raise JobSubmissionFailed if the load failed"""

    @abstractmethod
    async def print(self, options: PrintOptions) -> Tuple[bool, Optional[str]]:
        """Submit a print job; returns (success, failure_reason)"""

    @abstractmethod
    async def print_to_pdf(self, options: PdfOptions) -> bytes:
        """Render the loaded content to PDF bytes"""

    @abstractmethod
    def close(self) -> None:
        pass

    @property
    @abstractmethod
    def is_destroyed(self) -> bool:
        pass


class SurfaceHost(ABC):
    """Handle to the active application surface"""

    @abstractmethod
    def create_surface(self, width_px: int, height_px: int) -> RenderSurface:
        pass

    def get_printers(self) -> List[PrinterDescriptor]:
        """Native printer enumeration; raise NotImplementedError if the runtime has none"""
        raise NotImplementedError('Native printer enumeration not available')

    @abstractmethod
    def open_path(self, path: str) -> bool:
        """Hand a file to the OS default handler; True if it was opened"""
