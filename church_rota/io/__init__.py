"""I/O utilities for CSV import/export."""

from .export_csv import export_programs_csv, programs_to_frame
from .import_csv import import_activities_csv, import_history_csv, import_persons_csv

__all__ = [
    "import_persons_csv",
    "import_activities_csv",
    "import_history_csv",
    "export_programs_csv",
    "programs_to_frame",
]
