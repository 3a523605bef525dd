"""
Excel export helper wrapping xlsxwriter.

Provides ``ExcelExporter``, a stateful builder that constructs a styled
workbook in memory and returns its bytes for streaming via FastAPI's
``StreamingResponse``.

Usage example::

    exporter = ExcelExporter(title="任务清单", filters={"状态": "pending"})
    exporter.add_header()
    exporter.add_kpi_row({"已逾期": 2, "今天到期": 1})
    exporter.add_data_table(headers, rows, highlight_col=4)
    file_bytes = exporter.finalize()

Design notes
------------
- Uses ``xlsxwriter`` in in-memory mode (``BytesIO``).
- Column widths follow the longest value in each column, capped at 60
  characters.  CJK characters count double.
- Alternating rows are shaded light grey.
- An optional highlight column colours each cell by task priority.
"""

from __future__ import annotations

import io
import unicodedata
from datetime import datetime
from typing import Any, Sequence

import xlsxwriter
from xlsxwriter.workbook import Workbook
from xlsxwriter.worksheet import Worksheet

_COLOR_PRIMARY = "#3b82f6"
_COLOR_WHITE = "#FFFFFF"
_COLOR_LIGHT_GREY = "#F3F4F6"
_COLOR_SUBHEADER_BG = "#1E3A5F"

# Priority → (background, font)
_PRIORITY_COLORS: dict[str, tuple[str, str]] = {
    "urgent": ("#FEE2E2", "#B91C1C"),
    "high": ("#FEF3C7", "#B45309"),
    "normal": ("#DBEAFE", "#1D4ED8"),
    "low": ("#F3F4F6", "#374151"),
}

_MAX_COL_WIDTH = 60
_MIN_COL_WIDTH = 8


def _display_width(value: Any) -> int:
    text = "" if value is None else str(value)
    return sum(2 if unicodedata.east_asian_width(ch) in "WF" else 1 for ch in text)


class ExcelExporter:
    """Stateful Excel workbook builder.

    Creates a single worksheet with a title header, an optional KPI row and
    a styled data table.

    Args:
        title: Title written in the header row.
        filters: Applied filter labels shown under the title,
                 e.g. ``{"项目": "XM-001"}``.
        sheet_name: Name of the worksheet tab.
    """

    def __init__(
        self,
        title: str,
        filters: dict[str, str] | None = None,
        sheet_name: str = "任务",
    ) -> None:
        self._title = title
        self._filters = filters or {}

        self._buffer = io.BytesIO()
        self._workbook: Workbook = xlsxwriter.Workbook(self._buffer, {"in_memory": True})
        self._worksheet: Worksheet = self._workbook.add_worksheet(sheet_name)

        self._current_row: int = 0
        self._num_cols: int = 1
        self._formats: dict[str, Any] = self._build_formats()

    # -----------------------------------------------------------------------
    # Format factory
    # -----------------------------------------------------------------------

    def _build_formats(self) -> dict[str, Any]:
        wb = self._workbook
        cell = {
            "font_size": 10,
            "font_color": "#111827",
            "valign": "vcenter",
            "border": 1,
            "border_color": "#E5E7EB",
        }
        formats: dict[str, Any] = {
            "header_main": wb.add_format({
                "bold": True,
                "font_size": 16,
                "font_color": _COLOR_WHITE,
                "bg_color": _COLOR_PRIMARY,
                "align": "center",
                "valign": "vcenter",
            }),
            "header_sub": wb.add_format({
                "font_size": 10,
                "font_color": _COLOR_WHITE,
                "bg_color": _COLOR_SUBHEADER_BG,
                "align": "center",
                "valign": "vcenter",
            }),
            "filter_key": wb.add_format({
                "bold": True,
                "font_size": 9,
                "bg_color": "#E5E7EB",
                "align": "right",
            }),
            "filter_value": wb.add_format({"font_size": 9, "bg_color": "#F9FAFB"}),
            "kpi_label": wb.add_format({
                "bold": True,
                "font_size": 10,
                "bg_color": "#EFF6FF",
                "align": "center",
                "border": 1,
                "border_color": "#BFDBFE",
            }),
            "kpi_value": wb.add_format({
                "bold": True,
                "font_size": 12,
                "font_color": _COLOR_PRIMARY,
                "bg_color": "#EFF6FF",
                "align": "center",
                "border": 1,
                "border_color": "#BFDBFE",
            }),
            "col_header": wb.add_format({
                "bold": True,
                "font_color": _COLOR_WHITE,
                "bg_color": _COLOR_SUBHEADER_BG,
                "align": "center",
                "valign": "vcenter",
                "border": 1,
                "text_wrap": True,
            }),
            "data_plain": wb.add_format({**cell, "bg_color": _COLOR_WHITE}),
            "data_alt": wb.add_format({**cell, "bg_color": _COLOR_LIGHT_GREY}),
        }
        for priority, (bg, fg) in _PRIORITY_COLORS.items():
            formats[f"priority_{priority}"] = wb.add_format({
                **cell,
                "bold": True,
                "align": "center",
                "bg_color": bg,
                "font_color": fg,
            })
        return formats

    # -----------------------------------------------------------------------
    # Public builder methods
    # -----------------------------------------------------------------------

    def add_header(self, num_cols: int = 6) -> "ExcelExporter":
        """Write the title row, a generation-time row and one row per filter.

        Returns:
            ``self`` for method chaining.
        """
        ws = self._worksheet
        last_col = max(self._num_cols, num_cols) - 1

        ws.set_row(self._current_row, 30)
        ws.merge_range(
            self._current_row, 0, self._current_row, last_col,
            self._title, self._formats["header_main"],
        )
        self._current_row += 1

        generated = datetime.now().strftime("%Y-%m-%d %H:%M")
        ws.merge_range(
            self._current_row, 0, self._current_row, last_col,
            f"生成时间: {generated}", self._formats["header_sub"],
        )
        self._current_row += 1

        for key, value in self._filters.items():
            ws.write(self._current_row, 0, key, self._formats["filter_key"])
            ws.merge_range(
                self._current_row, 1, self._current_row, last_col,
                value, self._formats["filter_value"],
            )
            self._current_row += 1

        self._current_row += 1
        return self

    def add_kpi_row(self, kpis: dict[str, Any]) -> "ExcelExporter":
        """Write label cells above value cells, one pair per KPI.

        Returns:
            ``self`` for method chaining.
        """
        ws = self._worksheet
        for col, (label, value) in enumerate(kpis.items()):
            ws.write(self._current_row, col, label, self._formats["kpi_label"])
            ws.write(self._current_row + 1, col, value, self._formats["kpi_value"])
        self._current_row += 3
        return self

    def add_data_table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        highlight_col: int | None = None,
    ) -> "ExcelExporter":
        """Write a styled table with alternating row shading.

        Args:
            headers: Column header strings.
            rows: Data rows, each as long as ``headers``.
            highlight_col: Index of a column holding a priority value
                (``urgent``/``high``/``normal``/``low``) to colour-code.

        Returns:
            ``self`` for method chaining.
        """
        ws = self._worksheet
        self._num_cols = len(headers)
        col_widths = [_display_width(h) for h in headers]

        ws.set_row(self._current_row, 20)
        for ci, header in enumerate(headers):
            ws.write(self._current_row, ci, header, self._formats["col_header"])
        self._current_row += 1

        for ri, data_row in enumerate(rows):
            row_fmt = self._formats["data_alt" if ri % 2 else "data_plain"]
            for ci, value in enumerate(data_row):
                fmt = row_fmt
                if ci == highlight_col:
                    fmt = self._formats.get(f"priority_{value}", row_fmt)
                ws.write(self._current_row, ci, "" if value is None else value, fmt)
                col_widths[ci] = min(
                    _MAX_COL_WIDTH, max(col_widths[ci], _display_width(value))
                )
            self._current_row += 1

        for ci, width in enumerate(col_widths):
            ws.set_column(ci, ci, max(width + 2, _MIN_COL_WIDTH))
        return self

    def finalize(self) -> bytes:
        """Close the workbook and return the ``.xlsx`` bytes.

        The exporter must not be reused afterwards.
        """
        self._workbook.close()
        self._buffer.seek(0)
        return self._buffer.read()
