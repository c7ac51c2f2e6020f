# Export commands module

from .students import build_student_workbook, export_rows, export_students

__all__ = [
    "build_student_workbook",
    "export_rows",
    "export_students",
]
