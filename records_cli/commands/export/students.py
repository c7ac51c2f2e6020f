import os
from datetime import date, datetime
from typing import List, Optional, Sequence

import click
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from records_cli.models import StudentRecord
from records_cli.records import RecordStore
from records_cli.student_fields import STUDENT_FIELDS
from records_cli.utils.logging_config import get_logger

logger = get_logger(__name__)

REPORT_TITLE = "Laporan Data Siswa"
SHEET_TITLE = "DataSiswa"
CREATED_AT_HEADER = "Tanggal Dibuat"

HEADERS: List[str] = [f.label for f in STUDENT_FIELDS] + [CREATED_AT_HEADER]

# 0-based column indexes
TEXT_COLUMNS = {i for i, f in enumerate(STUDENT_FIELDS) if f.as_text}
CENTERED_COLUMNS = {i for i, f in enumerate(STUDENT_FIELDS) if f.centered} | {
    len(STUDENT_FIELDS)
}

TITLE_ROW = 1
SUBTITLE_ROW = 2
HEADER_ROW = 4
FIRST_DATA_ROW = HEADER_ROW + 1

NAME_COLUMN_MIN_WIDTH = 25
WIDTH_PADDING = 2

MONTHS_ID = [
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
]

thin = Side(style="thin")
cell_border = Border(top=thin, bottom=thin, left=thin, right=thin)
title_font = Font(size=18, bold=True)
subtitle_font = Font(bold=True)
header_font = Font(size=14, bold=True, color="FFFFFF")
header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
centered = Alignment(horizontal="center", vertical="center")
left_aligned = Alignment(horizontal="left", vertical="center")


def format_birth_date(value: Optional[str]) -> str:
    """Format an ISO date as dd-mm-yyyy, leaving anything else untouched."""
    if not value:
        return ""
    try:
        return date.fromisoformat(value).strftime("%d-%m-%Y")
    except ValueError:
        return value


def format_timestamp(millis: Optional[int]) -> str:
    if not millis:
        return ""
    return datetime.fromtimestamp(millis / 1000).strftime("%d-%m-%Y %H:%M:%S")


def format_export_date(moment: datetime) -> str:
    """E.g. ``05 Agustus 2024 14:30``."""
    return f"{moment.day:02d} {MONTHS_ID[moment.month - 1]} {moment.year} {moment:%H:%M}"


def export_row(record: StudentRecord) -> List[str]:
    row = []
    for definition in STUDENT_FIELDS:
        value = getattr(record, definition.name, None)
        if definition.name == "birth_date":
            row.append(format_birth_date(value))
        else:
            row.append("" if value is None else str(value))
    row.append(format_timestamp(record.created_at))
    return row


def export_rows(records: Sequence[StudentRecord]) -> List[List[str]]:
    """Tabular form of ``records`` in header order. Missing values are ``""``."""
    return [export_row(record) for record in records]


def column_widths(rows: Sequence[Sequence[str]]) -> List[int]:
    widths = []
    for col, header in enumerate(HEADERS):
        max_length = max([len(header)] + [len(row[col]) for row in rows])
        if col == 0:
            max_length = max(max_length, NAME_COLUMN_MIN_WIDTH)
        widths.append(max_length + WIDTH_PADDING)
    return widths


def build_student_workbook(
    records: Sequence[StudentRecord],
    exported_at: datetime,
    academic_year: Optional[str] = None,
) -> Workbook:
    """Build the styled student report. Pure: depends only on the arguments."""
    rows = export_rows(records)
    last_column = get_column_letter(len(HEADERS))

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    # Pin document metadata to the export time
    wb.properties.created = exported_at
    wb.properties.modified = exported_at

    title = REPORT_TITLE
    if academic_year:
        title = f"{REPORT_TITLE} - Tahun Ajaran {academic_year}"
    title_cell = ws.cell(row=TITLE_ROW, column=1, value=title)
    title_cell.font = title_font
    title_cell.alignment = centered

    subtitle_cell = ws.cell(
        row=SUBTITLE_ROW,
        column=1,
        value=f"Tanggal Ekspor: {format_export_date(exported_at)}",
    )
    subtitle_cell.font = subtitle_font
    subtitle_cell.alignment = centered

    ws.merge_cells(f"A{TITLE_ROW}:{last_column}{TITLE_ROW}")
    ws.merge_cells(f"A{SUBTITLE_ROW}:{last_column}{SUBTITLE_ROW}")

    for col, header in enumerate(HEADERS, 1):
        cell = ws.cell(row=HEADER_ROW, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.border = cell_border
        cell.alignment = centered

    for row_index, row in enumerate(rows, FIRST_DATA_ROW):
        for col, value in enumerate(row):
            cell = ws.cell(row=row_index, column=col + 1, value=value)
            cell.border = cell_border
            cell.alignment = centered if col in CENTERED_COLUMNS else left_aligned
            if col in TEXT_COLUMNS:
                cell.number_format = "@"

    for col, width in enumerate(column_widths(rows), 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    last_row = HEADER_ROW + len(rows)
    ws.auto_filter.ref = f"A{HEADER_ROW}:{last_column}{last_row}"

    return wb


def export_students(
    store: RecordStore,
    academic_year: str,
    output_dir: str = "exports",
    exported_at: Optional[datetime] = None,
) -> Optional[str]:
    """Export every student of ``academic_year`` to an Excel file and return its path."""
    records = store.list_all(academic_year)

    if not records:
        click.secho(f"No students registered for {academic_year}.", fg="yellow")
        return None

    exported_at = exported_at or datetime.now()
    wb = build_student_workbook(records, exported_at, academic_year)

    os.makedirs(output_dir, exist_ok=True)
    timestamp = exported_at.strftime("%Y%m%d_%H%M%S")
    excel_filename = f"data_siswa_{academic_year.replace('/', '-')}_{timestamp}.xlsx"
    excel_path = os.path.join(output_dir, excel_filename)

    wb.save(excel_path)
    logger.info(f"Exported {len(records)} students for {academic_year} to {excel_path}")

    click.secho(f"Successfully exported student data to: {excel_path}", fg="green")
    click.echo(f"\nSummary:")
    click.echo(f"- Academic year: {academic_year}")
    click.echo(f"- Total students: {len(records)}")

    return excel_path
