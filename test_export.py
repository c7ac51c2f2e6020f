import os
from datetime import datetime

from openpyxl import load_workbook

from conftest import make_student
from records_cli.commands.export.students import (
    CREATED_AT_HEADER,
    FIRST_DATA_ROW,
    HEADER_ROW,
    HEADERS,
    NAME_COLUMN_MIN_WIDTH,
    build_student_workbook,
    export_rows,
    export_students,
    format_export_date,
)

EXPORTED_AT = datetime(2024, 8, 5, 14, 30)


def test_headers_follow_field_order():
    assert HEADERS[0] == "Nama Lengkap"
    assert HEADERS[-1] == CREATED_AT_HEADER
    assert len(HEADERS) == 49


def test_empty_export_has_headers_only():
    wb = build_student_workbook([], EXPORTED_AT)
    ws = wb.active

    assert [c.value for c in ws[HEADER_ROW]] == HEADERS
    assert ws.max_row == HEADER_ROW
    assert ws.auto_filter.ref == f"A{HEADER_ROW}:AW{HEADER_ROW}"


def test_missing_fields_export_as_empty_strings(services, year):
    services.records.create(year, make_student())
    rows = export_rows(services.records.list_all(year))

    row = dict(zip(HEADERS, rows[0]))
    assert row["Nama Lengkap"] == "Budi Santoso"
    assert row["Tanggal Lahir"] == "04-03-2012"
    assert row["Nama Wali"] == ""
    assert row[CREATED_AT_HEADER] != ""


def test_workbook_layout(services, year):
    services.records.create(year, make_student(full_name="A Very Long Student Name Indeed For Width"))
    records = services.records.list_all(year)

    ws = build_student_workbook(records, EXPORTED_AT, year).active

    assert ws.title == "DataSiswa"
    assert ws["A1"].value == "Laporan Data Siswa - Tahun Ajaran 2024/2025"
    assert ws["A2"].value == "Tanggal Ekspor: 05 Agustus 2024 14:30"
    assert ws.cell(row=FIRST_DATA_ROW, column=1).value == records[0].full_name
    assert ws.cell(row=FIRST_DATA_ROW, column=HEADERS.index("NISN") + 1).number_format == "@"
    assert ws.column_dimensions["A"].width == len(records[0].full_name) + 2
    assert ws.column_dimensions["D"].width >= len("Kelas") + 2
    assert ws.auto_filter.ref == f"A{HEADER_ROW}:AW{FIRST_DATA_ROW}"


def test_name_column_has_a_minimum_width():
    ws = build_student_workbook([], EXPORTED_AT).active

    assert ws.column_dimensions["A"].width == NAME_COLUMN_MIN_WIDTH + 2


def test_rows_are_deterministic(services, year):
    for i in range(3):
        services.records.create(year, make_student(full_name=f"Siswa {i}"))
    records = services.records.list_all(year)

    first = build_student_workbook(records, EXPORTED_AT, year).active
    second = build_student_workbook(records, EXPORTED_AT, year).active

    values = lambda ws: [[c.value for c in row] for row in ws.iter_rows()]
    assert values(first) == values(second)


def test_format_export_date():
    assert format_export_date(datetime(2025, 1, 9, 7, 5)) == "09 Januari 2025 07:05"


def test_export_students_writes_a_file(services, year, tmp_path):
    services.records.create(year, make_student())

    path = export_students(services.records, year, str(tmp_path / "exports"), EXPORTED_AT)

    assert os.path.basename(path) == "data_siswa_2024-2025_20240805_143000.xlsx"
    ws = load_workbook(path).active
    assert ws.cell(row=FIRST_DATA_ROW, column=1).value == "Budi Santoso"


def test_export_students_skips_empty_years(services, year, tmp_path):
    assert export_students(services.records, year, str(tmp_path / "exports")) is None
    assert not (tmp_path / "exports").exists()
