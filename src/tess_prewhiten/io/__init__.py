"""Result serialization."""

from tess_prewhiten.io.frequency_table import (
    FREQUENCY_TABLE_COLUMNS,
    format_frequency_table,
    write_frequency_table,
)

__all__ = ["FREQUENCY_TABLE_COLUMNS", "format_frequency_table", "write_frequency_table"]
