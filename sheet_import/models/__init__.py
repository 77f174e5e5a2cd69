"""Domain models for the spreadsheet import pipeline.

Configuration records, the cell abstraction, row/sheet results and the reports
of the read-only validate/transform use cases.
"""

from .cell import Cell, CellType
from .config_models import (
    ColumnConfig,
    ColumnTransformation,
    ColumnType,
    ColumnValidation,
    ConstraintType,
    DatabaseConfig,
    DbColumnMapping,
    ErrorStrategy,
    ExistsInConfig,
    FileConfig,
    FilesConfig,
    ImportMode,
    LookupConfig,
    RowConstraint,
    SheetConfig,
    TransformerType,
)
from .error_record import ErrorRecord, ErrorType, ImportErrorDetail
from .processing_result import ImportMetrics, ImportReport, SheetImportResult
from .row_data import RowProcessingResult, RowValues

__all__ = [
    # Configuration models
    "ColumnConfig",
    "ColumnTransformation",
    "ColumnType",
    "ColumnValidation",
    "ConstraintType",
    "DatabaseConfig",
    "DbColumnMapping",
    "ErrorStrategy",
    "ExistsInConfig",
    "FileConfig",
    "FilesConfig",
    "ImportMode",
    "LookupConfig",
    "RowConstraint",
    "SheetConfig",
    "TransformerType",
    # Cells & rows
    "Cell",
    "CellType",
    "RowValues",
    "RowProcessingResult",
    # Results
    "ErrorRecord",
    "ErrorType",
    "ImportErrorDetail",
    "ImportMetrics",
    "ImportReport",
    "SheetImportResult",
]
