"""
CSV parsing module.

Tokenizing, header detection and column mapping for bulk imports.
"""

from parsers.csv_parser import (
    tokenize_csv,
    detect_delimiter,
)
from parsers.header_mapping import (
    detect_headers,
    auto_detect_mapping,
    missing_required_fields,
    generate_sample_csv,
)

__all__ = [
    "tokenize_csv",
    "detect_delimiter",
    "detect_headers",
    "auto_detect_mapping",
    "missing_required_fields",
    "generate_sample_csv",
]
