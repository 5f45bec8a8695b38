"""Render tabular data as a PNG image."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

from PIL import Image, ImageDraw, ImageFont

from voxcord.core.exceptions import TableRenderError

if TYPE_CHECKING:
    from collections.abc import Sequence

CELL_PADDING = 10
HEADER_HEIGHT = 40
ROW_HEIGHT = 35
TITLE_HEIGHT = 50
MIN_COLUMN_WIDTH = 100
CHAR_WIDTH = 10

BACKGROUND_COLOR = "#ffffff"
HEADER_COLOR = "#f3f4f6"
TEXT_COLOR = "#333333"
ALT_ROW_COLOR = "#f8f9fa"
GRID_COLOR = "#e5e7eb"


def column_widths(headers: Sequence[str], rows: Sequence[Sequence[object]]) -> list[int]:
    """Size each column to its longest header or cell, at least 100px."""
    widths = [max(MIN_COLUMN_WIDTH, len(str(h)) * CHAR_WIDTH) for h in headers]
    for row in rows:
        for index, cell in enumerate(row[: len(widths)]):
            widths[index] = max(widths[index], len(str(cell)) * CHAR_WIDTH)
    return widths


def render_table_image(
    headers: Sequence[str],
    rows: Sequence[Sequence[object]],
    title: str | None = None,
) -> bytes:
    """Draw a striped table with an optional title and return PNG bytes."""
    if not headers:
        msg = "a table needs at least one header"
        raise TableRenderError(msg)

    widths = column_widths(headers, rows)
    title_height = TITLE_HEIGHT if title else 0
    width = sum(widths) + CELL_PADDING * 2
    height = title_height + HEADER_HEIGHT + len(rows) * ROW_HEIGHT

    image = Image.new("RGB", (width, height), BACKGROUND_COLOR)
    draw = ImageDraw.Draw(image)
    title_font = ImageFont.load_default(size=16)
    font = ImageFont.load_default(size=14)

    if title:
        draw.text((width / 2, 30), title, fill=TEXT_COLOR, font=title_font, anchor="ms")

    draw.rectangle(
        (0, title_height, width, title_height + HEADER_HEIGHT),
        fill=HEADER_COLOR,
    )
    x = CELL_PADDING
    for index, header in enumerate(headers):
        draw.text(
            (x, title_height + HEADER_HEIGHT / 2),
            str(header),
            fill=TEXT_COLOR,
            font=font,
            anchor="lm",
        )
        x += widths[index]

    for row_index, row in enumerate(rows):
        y = title_height + HEADER_HEIGHT + row_index * ROW_HEIGHT
        fill = BACKGROUND_COLOR if row_index % 2 == 0 else ALT_ROW_COLOR
        draw.rectangle((0, y, width, y + ROW_HEIGHT), fill=fill)
        x = CELL_PADDING
        for cell_index, cell in enumerate(row[: len(widths)]):
            draw.text(
                (x, y + ROW_HEIGHT / 2),
                str(cell),
                fill=TEXT_COLOR,
                font=font,
                anchor="lm",
            )
            x += widths[cell_index]

    # Grid
    x = 0
    for column_width in widths:
        x += column_width
        draw.line((x, title_height, x, height), fill=GRID_COLOR)
    for row_index in range(len(rows) + 1):
        y = title_height + HEADER_HEIGHT + row_index * ROW_HEIGHT
        draw.line((0, y, width, y), fill=GRID_COLOR)

    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as exc:
        msg = f"could not encode table image: {exc}"
        raise TableRenderError(msg) from exc
    return buffer.getvalue()
