import csv
import io
import logging
from datetime import datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from pms.services.score_calculator import format_score

logger = logging.getLogger(__name__)

APPROVAL_FILLS = {
    "APPROVED": PatternFill(start_color="BBF7D0", end_color="BBF7D0", fill_type="solid"),
    "REJECTED": PatternFill(start_color="FECACA", end_color="FECACA", fill_type="solid"),
    "PENDING": PatternFill(start_color="FEF08A", end_color="FEF08A", fill_type="solid"),
}
ACHIEVED_FILL = APPROVAL_FILLS["APPROVED"]
NOT_ACHIEVED_FILL = APPROVAL_FILLS["PENDING"]
HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _pct(value: float, digits: int = 1) -> str:
    return f"{format_score(value, digits)}%"


def _metric_rows(summary) -> list[tuple[str, list, object]]:
    """(label, twelve cells, TOT/AVG cell) for every metric line of the table."""
    rows = summary.rows

    def _total(attr):
        return sum(getattr(r, attr) for r in rows)

    def _avg(attr):
        return _total(attr) / len(rows) if rows else 0

    ratios = [r.monthly_activity_achievement_count * 100 for r in rows]
    return [
        ("Total Activity", [r.total_activity for r in rows], _total("total_activity")),
        ("Count", [r.count_activity for r in rows], _total("count_activity")),
        ("Achieve", [r.achieve for r in rows], _total("achieve")),
        ("Not Achieve", [r.not_achieve for r in rows], _total("not_achieve")),
        ("Not Count", [r.total_activity - r.count_activity for r in rows],
         _total("total_activity") - _total("count_activity")),
        ("Count Weight", [_pct(r.count_weight) for r in rows], _pct(_avg("count_weight"))),
        ("Achieve Weight (W x A)", [_pct(r.achieve_weight) for r in rows], _pct(summary.total_average, 2)),
        ("Monthly Activity Achievement Count", [_pct(v) for v in ratios],
         _pct(sum(ratios) / len(ratios) if ratios else 0)),
        ("Approval by Dept Head", [r.monthly_approval for r in rows], ""),
    ]


def _apply_header_style(ws, row: int, col_count: int) -> None:
    """Apply dark-header styling to an Excel row (1-indexed)."""
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 60 chars)."""
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            if cell.value:
                max_len = max(max_len, min(len(str(cell.value)), 60))
        ws.column_dimensions[col_letter].width = max(max_len + 4, 10)


def export_summary_xlsx(summary) -> io.BytesIO:
    """
    Styled workbook of an executive summary: metrics as rows, months as
    columns, plus a TOT/AVG column. Returns a BytesIO for Flask send_file.
    """
    header = summary.header
    wb = Workbook()
    ws = wb.active
    ws.title = "Executive Summary"

    ws.merge_cells("A1:N1")
    ws["A1"] = f"Executive Summary — {header.get('ipp_id', '')}"
    ws["A1"].font = Font(size=16, bold=True)
    ws["A2"] = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")

    info = [
        ("NPK", header.get("npk", "")),
        ("Name", header.get("username", "")),
        ("Department", header.get("department", "")),
        ("Category", header.get("category", "")),
        ("Total Average", _pct(summary.total_average, 2)),
    ]
    for i, (label, value) in enumerate(info, 4):
        ws.cell(row=i, column=1, value=label).font = Font(bold=True)
        ws.cell(row=i, column=2, value=value)

    table_row = 4 + len(info) + 1
    year = summary.rows[0].year if summary.rows else ""
    headers = [f"Metric ({year})"] + list(MONTH_NAMES) + ["TOT/AVG"]
    for col, text in enumerate(headers, 1):
        ws.cell(row=table_row, column=col, value=text)
    _apply_header_style(ws, table_row, len(headers))

    for label, cells, total in _metric_rows(summary):
        table_row += 1
        ws.cell(row=table_row, column=1, value=label).border = THIN_BORDER
        for col, value in enumerate(cells, 2):
            cell = ws.cell(row=table_row, column=col, value=value)
            cell.border = THIN_BORDER
            cell.alignment = Alignment(horizontal="center")
            if label.startswith("Approval"):
                cell.fill = APPROVAL_FILLS.get(value, PatternFill())
            elif label.startswith("Monthly Activity"):
                ratio = summary.rows[col - 2].monthly_activity_achievement_count
                cell.fill = ACHIEVED_FILL if ratio > 0 else NOT_ACHIEVED_FILL
        total_cell = ws.cell(row=table_row, column=len(headers), value=total)
        total_cell.border = THIN_BORDER
        total_cell.font = Font(bold=True)
        total_cell.alignment = Alignment(horizontal="center")

    _auto_width(ws)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    logger.info("Executive summary xlsx generated for %s", header.get("ipp_id"))
    return buf


def export_summary_csv(summary) -> str:
    """One CSV line per month using the summary wire names.

    Returns:
        str: CSV content as a UTF-8 string.
    """
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow([
        "ipp_id", "year", "month", "total_activity", "count_activity", "achieve",
        "not_achieve", "count_weight", "achieve_weight",
        "monthly_activity_achievement_count", "monthly_approval",
    ])
    ipp_id = summary.header.get("ipp_id", "")
    for r in summary.rows:
        writer.writerow([
            ipp_id,
            r.year,
            r.month,
            r.total_activity,
            r.count_activity,
            r.achieve,
            r.not_achieve,
            format_score(r.count_weight),
            format_score(r.achieve_weight),
            format_score(r.monthly_activity_achievement_count, 4),
            r.monthly_approval,
        ])
    writer.writerow([ipp_id, "", "TOTAL_AVERAGE", "", "", "", "", "", format_score(summary.total_average), "", ""])
    return buf.getvalue()
