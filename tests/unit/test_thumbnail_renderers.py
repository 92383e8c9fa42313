from __future__ import annotations

import io
from pathlib import Path

import fitz
import pytest
from PIL import Image

from mediashelf.core.errors import ThumbnailRenderError, UnsupportedItemTypeError
from mediashelf.infrastructure.thumbnails.renderers import (
    hoshi_points,
    render_html_thumbnail,
    render_pdf_thumbnail,
    render_sgf_thumbnail,
    render_thumbnail,
)


def _open(png: bytes) -> Image.Image:
    return Image.open(io.BytesIO(png)).convert("RGB")


def _make_pdf(path: Path, pages: int = 2) -> None:
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=200, height=300)
        page.insert_text((20, 40), f"Page {i + 1}")
    doc.save(str(path))
    doc.close()


def test_hoshi_points_for_common_sizes() -> None:
    assert hoshi_points(19) == [3, 9, 15]
    assert hoshi_points(13) == [3, 6, 9]
    assert hoshi_points(9) == [2, 4, 6]
    assert hoshi_points(8) == [2, 5]
    assert hoshi_points(5) == []


def test_sgf_thumbnail_is_square_board_with_stones() -> None:
    rendered = render_sgf_thumbnail("(;SZ[9];B[ee];W[aa])", 200)
    image = _open(rendered.png)

    assert (rendered.width, rendered.height) == (200, 200)
    assert image.size == (200, 200)
    assert image.getpixel((2, 2)) == (0xD0, 0xA1, 0x5B)
    # centre intersection of a 9x9 board at width 200
    assert image.getpixel((100, 100)) == (0x11, 0x11, 0x11)


def test_sgf_thumbnail_at_earlier_node_omits_later_stones() -> None:
    text = "(;SZ[9];B[ee];W[cc])"
    at_root = _open(render_sgf_thumbnail(text, 200, node_index=0).png)
    final = _open(render_sgf_thumbnail(text, 200).png)

    assert at_root.getpixel((100, 100)) != (0x11, 0x11, 0x11)
    assert final.getpixel((100, 100)) == (0x11, 0x11, 0x11)


def test_html_card_uses_portrait_aspect() -> None:
    rendered = render_html_thumbnail(260)
    image = _open(rendered.png)

    assert (rendered.width, rendered.height) == (260, 338)
    assert image.size == (260, 338)
    assert image.getpixel((0, 0)) == (0xF4, 0xF4, 0xF4)


def test_pdf_thumbnail_scales_first_page_to_width(tmp_path: Path) -> None:
    pdf = tmp_path / "doc.pdf"
    _make_pdf(pdf)

    rendered = render_pdf_thumbnail(pdf, 400)

    assert abs(rendered.width - 400) <= 1
    assert abs(rendered.height - 600) <= 1
    assert _open(rendered.png).size == (rendered.width, rendered.height)


def test_corrupt_pdf_raises_render_error(tmp_path: Path) -> None:
    bad = tmp_path / "bad.pdf"
    bad.write_bytes(b"this is not a pdf")

    with pytest.raises(ThumbnailRenderError):
        render_pdf_thumbnail(bad, 100)


def test_dispatch_wraps_unreadable_sgf(tmp_path: Path) -> None:
    with pytest.raises(ThumbnailRenderError):
        render_thumbnail("sgf", tmp_path / "missing.sgf", 100)


def test_truncated_sgf_still_renders_its_moves(tmp_path: Path) -> None:
    truncated = tmp_path / "cut.sgf"
    truncated.write_text("(;SZ[9]PB[a]PW[b];B[ee];W[cc]", encoding="utf-8")

    rendered = render_thumbnail("sgf", truncated, 200)

    assert (rendered.width, rendered.height) == (200, 200)
    assert _open(rendered.png).getpixel((100, 100)) == (0x11, 0x11, 0x11)


def test_dispatch_rejects_unknown_type(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedItemTypeError):
        render_thumbnail("epub", tmp_path / "x.epub", 100)
