import asyncio
import threading
import uuid
from pathlib import Path

import fitz  # PyMuPDF
import structlog

from ..config import get_settings
from ..exceptions import TransientBackendError

logger = structlog.get_logger(__name__)

# A4 landscape, in points
PAGE_WIDTH = 842
PAGE_HEIGHT = 595

DARK_BACKGROUND = (26 / 255, 11 / 255, 46 / 255)
VIOLET = (107 / 255, 33 / 255, 168 / 255)
GREEN = (34 / 255, 197 / 255, 94 / 255)
WHITE = (1, 1, 1)


class CertificateRenderer:
    """Renders completion certificates as PDF files and returns their public URL."""

    def __init__(self, storage_dir: str = None, base_url: str = None, title: str = None,
                 organization: str = None, timeout_seconds: float = None):
        settings = get_settings()
        self.storage_dir = Path(storage_dir or settings.certificate_storage_dir)
        self.base_url = (base_url or settings.certificate_base_url).rstrip("/")
        self.title = title or settings.certificate_title
        self.organization = organization or settings.certificate_organization
        self.timeout_seconds = timeout_seconds or settings.certificate_render_timeout_seconds

    async def generate(self, student_name: str, course_name: str, completion_date: str) -> str:
        filename = f"certificate-{uuid.uuid4()}.pdf"
        path = self.storage_dir / filename
        # Only a finished render is moved to its public name.
        partial = path.with_name(f"{filename}.part")
        abandoned = threading.Event()
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._render_pdf, partial, student_name, course_name, completion_date, abandoned),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            # The worker thread cannot be cancelled; it removes its own output once it sees the flag.
            abandoned.set()
            partial.unlink(missing_ok=True)
            logger.error("certificate_render_timeout", filename=filename, timeout=self.timeout_seconds)
            raise TransientBackendError(
                f"Certificate rendering timed out after {self.timeout_seconds}s",
                error_code="CERTIFICATE_RENDER_TIMEOUT"
            ) from e
        except (OSError, RuntimeError) as e:
            partial.unlink(missing_ok=True)
            logger.error("certificate_render_failed", filename=filename, error=str(e))
            raise TransientBackendError(f"Certificate rendering failed: {e}", error_code="CERTIFICATE_RENDER_FAILED") from e

        partial.replace(path)
        url = f"{self.base_url}/{filename}"
        logger.info("certificate_rendered", url=url, course_name=course_name)
        return url

    def discard(self, url: str) -> None:
        """Deletes the stored file behind a URL returned by generate."""
        path = self.storage_dir / url.rsplit("/", 1)[-1]
        path.unlink(missing_ok=True)
        logger.info("certificate_discarded", url=url)

    def _render_pdf(self, path: Path, student_name: str, course_name: str, completion_date: str,
                    abandoned: threading.Event = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = fitz.open()
        try:
            page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
            page.draw_rect(page.rect, color=DARK_BACKGROUND, fill=DARK_BACKGROUND)
            page.draw_rect(fitz.Rect(28, 28, PAGE_WIDTH - 28, PAGE_HEIGHT - 28), color=VIOLET, width=3)
            page.draw_rect(fitz.Rect(42, 42, PAGE_WIDTH - 42, PAGE_HEIGHT - 42), color=GREEN, width=1)
            page.draw_line(fitz.Point(170, 142), fitz.Point(PAGE_WIDTH - 170, 142), color=VIOLET, width=0.5)

            self._centered(page, 90, self.title, 32, GREEN, bold=True)
            self._centered(page, 185, "Ceci certifie que", 14, WHITE)
            self._centered(page, 230, student_name or "Étudiant", 24, GREEN, bold=True)
            self._centered(page, 285, "a complété avec succès la formation", 14, WHITE)
            self._centered(page, 320, course_name, 20, VIOLET, bold=True)
            self._centered(page, 380, f"Délivré le {completion_date}", 12, WHITE)
            self._centered(page, 450, self.organization, 16, GREEN, bold=True)

            doc.save(str(path))
        finally:
            doc.close()
        if abandoned is not None and abandoned.is_set():
            path.unlink(missing_ok=True)
        return path

    @staticmethod
    def _centered(page, top: float, text: str, size: float, color, bold: bool = False):
        box = fitz.Rect(40, top, PAGE_WIDTH - 40, top + size * 2.2)
        page.insert_textbox(
            box,
            text,
            fontsize=size,
            fontname="hebo" if bold else "helv",
            color=color,
            align=fitz.TEXT_ALIGN_CENTER,
        )
