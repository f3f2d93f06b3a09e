"""
Pay application exports: Markdown/HTML reports and Excel workbooks.
"""

from cpas.reporting.excel_exporter import ExcelExporter, g702_rows
from cpas.reporting.generator import REPORT_FORMATS, ReportGenerator

__all__ = ["ExcelExporter", "REPORT_FORMATS", "ReportGenerator", "g702_rows"]
