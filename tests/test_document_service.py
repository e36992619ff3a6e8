"""
PDF assembly and image download tests
"""
import re
import threading
import pytest

from conftest import FakeResponse
import services.document_service as document_service
from services.document_service import build_pdf, fetch_image
from utils.errors import UpstreamTransportError

PAGE_PATTERN = re.compile(rb"/Type /Page[^s]")


def page_count(pdf: bytes) -> int:
    return len(PAGE_PATTERN.findall(pdf))


@pytest.mark.unit
class TestBuildPdf:

    def test_story_without_image(self, sample_story):
        pdf = build_pdf("Lighthouse Keeper", None, sample_story, compress=False)

        assert pdf.startswith(b"%PDF")
        assert page_count(pdf) >= 1
        assert b"Lighthouse Keeper" in pdf
        assert b"Inside the bottle was a map of the bay" in pdf
        assert b"/Subtype /Image" not in pdf

    def test_title_page_precedes_story_page(self, sample_story):
        pdf = build_pdf("Lighthouse Keeper", None, sample_story, compress=False)

        assert page_count(pdf) == 2
        assert pdf.index(b"Lighthouse Keeper) Tj") < pdf.index(b"Inside the bottle was a map of the bay")

    def test_image_page_precedes_story_page(self, png_file, sample_story):
        pdf = build_pdf("Lighthouse Keeper", png_file, sample_story, compress=False)

        assert page_count(pdf) == 2
        assert b"/Subtype /Image" in pdf
        image_draw = re.search(rb"/FormXob\.\w+ Do", pdf)
        assert image_draw is not None
        assert image_draw.start() < pdf.index(b"Inside the bottle was a map of the bay")

    def test_markup_characters_are_escaped(self):
        pdf = build_pdf("Cats & <Dogs>", None, "Tom & Jerry <3", compress=False)
        assert pdf.startswith(b"%PDF")
        assert b"Tom & Jerry <3" in pdf

    def test_empty_title_still_renders(self, sample_story):
        assert build_pdf("", None, sample_story).startswith(b"%PDF")

    def test_nothing_written_to_disk(self, tmp_path, monkeypatch, sample_story):
        monkeypatch.chdir(tmp_path)
        build_pdf("Title", None, sample_story)
        assert list(tmp_path.iterdir()) == []


@pytest.mark.unit
class TestFetchImage:

    @pytest.mark.asyncio
    async def test_streams_into_unique_files(self, tmp_path, transport, png_bytes):
        scratch = tmp_path / "nested" / "scratch"
        half = len(png_bytes) // 2
        transport.queue(
            FakeResponse(200, chunks=[png_bytes[:half], png_bytes[half:]]),
            FakeResponse(200, chunks=[png_bytes]),
        )

        first = await fetch_image("https://img.example.test/a.png", scratch, session_factory=transport)
        second = await fetch_image("https://img.example.test/a.png", scratch, session_factory=transport)

        assert first != second
        assert first.parent == scratch
        assert first.read_bytes() == png_bytes
        assert second.read_bytes() == png_bytes
        assert transport.calls[0]["method"] == "GET"

    @pytest.mark.asyncio
    async def test_file_writes_run_in_worker_threads(self, tmp_path, transport, png_bytes, monkeypatch):
        loop_thread = threading.current_thread()
        write_threads = []
        real_open = open

        class RecordingFile:
            def __init__(self, path, mode):
                self._file = real_open(path, mode)

            def write(self, data):
                write_threads.append(threading.current_thread())
                return self._file.write(data)

            def close(self):
                self._file.close()

        monkeypatch.setattr(document_service, "open", RecordingFile, raising=False)
        transport.queue(FakeResponse(200, chunks=[png_bytes[:10], png_bytes[10:]]))

        path = await fetch_image("https://img.example.test/a.png", tmp_path, session_factory=transport)

        assert path.read_bytes() == png_bytes
        assert len(write_threads) == 2
        assert all(thread is not loop_thread for thread in write_threads)

    @pytest.mark.asyncio
    async def test_http_error_propagates_and_leaves_no_file(self, tmp_path, transport):
        transport.queue(FakeResponse(404))

        with pytest.raises(UpstreamTransportError) as exc_info:
            await fetch_image("https://img.example.test/gone.png", tmp_path, session_factory=transport)

        assert exc_info.value.status == 404
        assert list(tmp_path.iterdir()) == []
