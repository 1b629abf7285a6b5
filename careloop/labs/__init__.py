"""
Lab value extraction boundary.

Design intent:
- Parse tabular lab lines out of unstructured report text.
- Flag values against explicit or typical reference ranges.
"""
from .extractor import LabValue, compute_flag, extract_lab_values

__all__ = ["LabValue", "compute_flag", "extract_lab_values"]
