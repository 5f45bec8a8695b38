from __future__ import annotations

import io

import pytest
from PIL import Image

from voxcord.core.exceptions import TableRenderError
from voxcord.services.tables import (
    HEADER_HEIGHT,
    ROW_HEIGHT,
    TITLE_HEIGHT,
    column_widths,
    render_table_image,
)


def test_column_widths_grow_with_longest_cell() -> None:
    widths = column_widths(["id", "description"], [["1", "x" * 30], ["22"]])

    assert widths == [100, 300]


def test_render_table_image_returns_png_sized_to_content() -> None:
    png = render_table_image(["City", "Temp"], [["Berlin", 12], ["Lagos", 31]], "Weather")

    assert png.startswith(b"\x89PNG\r\n\x1a\n")
    with Image.open(io.BytesIO(png)) as image:
        assert image.height == TITLE_HEIGHT + HEADER_HEIGHT + 2 * ROW_HEIGHT
        assert image.width == 100 + 100 + 20


def test_render_table_image_requires_headers() -> None:
    with pytest.raises(TableRenderError, match="header"):
        render_table_image([], [["orphan"]])
