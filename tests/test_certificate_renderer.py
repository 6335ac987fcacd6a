import asyncio
import time
from unittest.mock import patch

import pytest

from campus.exceptions import TransientBackendError
from campus.services.certificate_renderer import CertificateRenderer


@pytest.fixture
def renderer(tmp_path):
    return CertificateRenderer(
        storage_dir=str(tmp_path / "certs"),
        base_url="https://cdn.example.com/certificates/",
        title="CERTIFICAT DE RÉUSSITE",
        organization="Meta Ads Mastery",
        timeout_seconds=10,
    )


@pytest.mark.asyncio
async def test_generate_writes_pdf_and_returns_public_url(renderer, tmp_path):
    url = await renderer.generate("Marie Curie", "Meta Ads Fondamentaux", "19/10/2026")

    assert url.startswith("https://cdn.example.com/certificates/certificate-")
    assert url.endswith(".pdf")

    filename = url.rsplit("/", 1)[-1]
    path = tmp_path / "certs" / filename
    assert path.exists()
    assert path.read_bytes().startswith(b"%PDF")


@pytest.mark.asyncio
async def test_each_certificate_gets_its_own_file(renderer, tmp_path):
    first = await renderer.generate("A", "Cours", "01/01/2026")
    second = await renderer.generate("A", "Cours", "01/01/2026")

    assert first != second
    assert len(list((tmp_path / "certs").iterdir())) == 2


@pytest.mark.asyncio
async def test_render_timeout_is_transient(tmp_path):
    renderer = CertificateRenderer(storage_dir=str(tmp_path), timeout_seconds=0.05)

    with patch.object(renderer, "_render_pdf", side_effect=lambda *args: time.sleep(0.5)):
        with pytest.raises(TransientBackendError) as exc_info:
            await renderer.generate("A", "Cours", "01/01/2026")

    assert exc_info.value.error_code == "CERTIFICATE_RENDER_TIMEOUT"


@pytest.mark.asyncio
async def test_storage_failure_is_transient(renderer):
    with patch.object(renderer, "_render_pdf", side_effect=OSError("disk full")):
        with pytest.raises(TransientBackendError) as exc_info:
            await renderer.generate("A", "Cours", "01/01/2026")

    assert exc_info.value.error_code == "CERTIFICATE_RENDER_FAILED"


@pytest.mark.asyncio
async def test_timed_out_render_leaves_no_file_behind(tmp_path):
    renderer = CertificateRenderer(storage_dir=str(tmp_path / "certs"), timeout_seconds=0.05)
    render = renderer._render_pdf

    def slow_render(*args):
        time.sleep(0.3)
        return render(*args)

    with patch.object(renderer, "_render_pdf", side_effect=slow_render):
        with pytest.raises(TransientBackendError):
            await renderer.generate("A", "Cours", "01/01/2026")
        # Let the abandoned worker thread finish its write.
        await asyncio.sleep(1.5)

    assert list((tmp_path / "certs").iterdir()) == []


@pytest.mark.asyncio
async def test_discard_removes_the_rendered_file(renderer, tmp_path):
    url = await renderer.generate("Marie Curie", "Meta Ads Fondamentaux", "19/10/2026")

    renderer.discard(url)

    assert list((tmp_path / "certs").iterdir()) == []
