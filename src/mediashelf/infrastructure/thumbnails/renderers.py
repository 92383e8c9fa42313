from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path

import fitz  # PyMuPDF
from PIL import Image, ImageDraw, ImageFont

from mediashelf.core.errors import ThumbnailRenderError, UnsupportedItemTypeError
from mediashelf.domain.models.board import BLACK, WHITE, GoBoard
from mediashelf.infrastructure.parsers.sgf import load_game, replay

BOARD_COLOR = "#d0a15b"
LINE_COLOR = "#000000"
BLACK_STONE = "#111111"
WHITE_STONE = "#eeeeee"
CARD_BACKGROUND = "#f4f4f4"
CARD_TEXT = "#2d3b4f"
HTML_ASPECT = 1.3


@dataclass(slots=True)
class RenderedThumbnail:
    png: bytes
    width: int
    height: int


def html_card_height(width: int) -> int:
    return round(width * HTML_ASPECT)


def render_thumbnail(item_type: str, source: Path, width: int) -> RenderedThumbnail:
    if item_type == "pdf":
        return render_pdf_thumbnail(source, width)
    if item_type == "sgf":
        try:
            text = source.read_text(encoding="utf-8", errors="replace")
            return render_sgf_thumbnail(text, width)
        except OSError as exc:
            raise ThumbnailRenderError(f"Cannot render SGF {source.name}: {exc}") from exc
    if item_type == "html":
        return render_html_thumbnail(width)
    raise UnsupportedItemTypeError(f"No thumbnail renderer for type: {item_type}")


def render_pdf_thumbnail(source: Path, width: int) -> RenderedThumbnail:
    try:
        doc = fitz.open(str(source))
    except Exception as exc:
        raise ThumbnailRenderError(f"Cannot open PDF {source.name}: {exc}") from exc
    try:
        if doc.page_count < 1:
            raise ThumbnailRenderError(f"PDF has no pages: {source.name}")
        page = doc.load_page(0)
        page_width = page.rect.width or 1.0
        scale = width / page_width
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return RenderedThumbnail(png=pix.tobytes("png"), width=pix.width, height=pix.height)
    except ThumbnailRenderError:
        raise
    except Exception as exc:
        raise ThumbnailRenderError(f"Cannot render PDF {source.name}: {exc}") from exc
    finally:
        doc.close()


def render_sgf_thumbnail(sgf_text: str, width: int, node_index: int | None = None) -> RenderedThumbnail:
    board = replay(load_game(sgf_text), node_index)
    image = Image.new("RGB", (width, width), BOARD_COLOR)
    draw = ImageDraw.Draw(image)
    _draw_grid(draw, board.size, width)
    _draw_stones(draw, board, width)
    return RenderedThumbnail(png=_to_png(image), width=width, height=width)


def render_html_thumbnail(width: int, height: int | None = None) -> RenderedThumbnail:
    height = height or html_card_height(width)
    image = Image.new("RGB", (width, height), CARD_BACKGROUND)
    draw = ImageDraw.Draw(image)
    font = _load_font(max(8, round(width * 0.2)))
    left, top, right, bottom = draw.textbbox((0, 0), "HTML", font=font)
    x = (width - (right - left)) / 2 - left
    y = (height - (bottom - top)) / 2 - top
    draw.text((x, y), "HTML", fill=CARD_TEXT, font=font)
    return RenderedThumbnail(png=_to_png(image), width=width, height=height)


def hoshi_points(size: int) -> list[int]:
    if size >= 13:
        edge = 3
    elif size >= 7:
        edge = 2
    else:
        return []
    points = [edge, size - 1 - edge]
    if size % 2 == 1:
        points.insert(1, (size - 1) // 2)
    return points


def _geometry(size: int, width: int) -> tuple[float, float]:
    padding = width * 0.05
    step = (width - padding * 2) / max(1, size - 1)
    return padding, step


def _draw_grid(draw: ImageDraw.ImageDraw, size: int, width: int) -> None:
    padding, step = _geometry(size, width)
    line_width = max(1, round(width * 0.0025))
    for i in range(size):
        offset = padding + i * step
        draw.line([(padding, offset), (width - padding, offset)], fill=LINE_COLOR, width=line_width)
        draw.line([(offset, padding), (offset, width - padding)], fill=LINE_COLOR, width=line_width)
    radius = max(2.0, width * 0.01)
    stars = hoshi_points(size)
    for i in stars:
        for j in stars:
            cx = padding + i * step
            cy = padding + j * step
            draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], fill=LINE_COLOR)


def _draw_stones(draw: ImageDraw.ImageDraw, board: GoBoard, width: int) -> None:
    padding, step = _geometry(board.size, width)
    radius = step * 0.45
    outline_width = max(1, round(width * 0.002))
    for color, fill in ((BLACK, BLACK_STONE), (WHITE, WHITE_STONE)):
        for x, y in board.stones_of(color):
            cx = padding + x * step
            cy = padding + y * step
            draw.ellipse(
                [cx - radius, cy - radius, cx + radius, cy + radius],
                fill=fill,
                outline=LINE_COLOR,
                width=outline_width,
            )


def _load_font(size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=size)


def _to_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()
