"""
Excel exporter for the Construction Pay Application System.

This module writes a pay application to an Excel workbook: the G702 summary,
the G703 continuation sheet, the project's change orders and the validation
result. Every number is read from the billing engine's output.
"""

import logging
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from cpas.billing.engine import BillingEngine, PayAppCalculation
from cpas.billing.models import ChangeOrder, G702Summary, PayApplication, Project

# Set up logging
logger = logging.getLogger(__name__)

SHEET_NAMES = ['G702 Summary', 'G703 Continuation', 'Change Orders', 'Validation']

G703_COLUMNS = [
    'Item', 'Description', 'Scheduled Value (C)', 'Previous (D)', 'This Period (E)',
    'Materials Stored (F)', 'Completed & Stored (G)', '% Complete (H)', 'Balance to Finish (I)',
    'Retainage'
]


def g702_rows(summary: G702Summary) -> List[Tuple[str, str, Decimal]]:
    """The G702 lines as (line, label, amount) in form order."""
    return [
        ('1', 'Original Contract Sum', summary.line1_original_contract_sum),
        ('2', 'Net Change by Change Orders', summary.line2_net_change_orders),
        ('3', 'Contract Sum to Date', summary.line3_contract_sum_to_date),
        ('4', 'Total Completed and Stored to Date', summary.line4_total_completed_and_stored),
        ('5a', 'Retainage on Completed Work', summary.line5a_retainage_on_completed),
        ('5b', 'Retainage on Stored Material', summary.line5b_retainage_on_stored),
        ('5c', 'Total Retainage', summary.line5c_total_retainage),
        ('6', 'Total Earned Less Retainage', summary.line6_total_earned_less_retainage),
        ('7', 'Less Previous Certificates for Payment', summary.line7_less_previous_certificates),
        ('8', 'Current Payment Due', summary.line8_current_payment_due),
        ('9', 'Balance to Finish, Including Retainage', summary.line9_balance_to_finish_plus_retainage),
    ]


def _number(value: Any) -> Optional[float]:
    return None if value is None else float(value)


class ExcelExporter:
    """Exports pay applications to Excel format."""

    def __init__(self, engine: Optional[BillingEngine] = None):
        """Initialize the Excel exporter.

        Args:
            engine: Billing engine used to present snapshots
        """
        self.engine = engine or BillingEngine()

    def export_pay_application(
        self,
        output_path: Union[str, Path],
        project: Project,
        application: PayApplication,
        change_orders: Iterable[ChangeOrder] = (),
        calculation: Optional[PayAppCalculation] = None
    ) -> Dict[str, Any]:
        """Export one pay application to Excel.

        Args:
            output_path: Path to save the Excel file
            project: Project the application belongs to
            application: Pay application snapshot
            change_orders: The project's change orders
            calculation: Calculation to export (defaults to the snapshot's own figures)

        Returns:
            Dictionary with export information
        """
        logger.info(f"Exporting pay application #{application.application_number} to Excel: {output_path}")

        if calculation is None:
            calculation = self.engine.snapshot_calculation(application)

        # Create a writer to save the Excel file
        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            self._export_summary_sheet(writer, project, application, calculation)
            self._export_continuation_sheet(writer, calculation)
            self._export_change_orders_sheet(writer, change_orders)
            self._export_validation_sheet(writer, calculation)

            workbook = writer.book
            for sheet_name in workbook.sheetnames:
                self._format_sheet(workbook[sheet_name])
                self._auto_adjust_columns(workbook[sheet_name])

        return {
            'path': str(output_path),
            'sheets': list(SHEET_NAMES),
            'generated_at': datetime.now().isoformat()
        }

    def _export_summary_sheet(
        self,
        writer: pd.ExcelWriter,
        project: Project,
        application: PayApplication,
        calculation: PayAppCalculation
    ) -> None:
        header = [
            ('', 'Project', project.name),
            ('', 'Application No.', application.application_number),
            ('', 'Period From', application.period_from.isoformat() if application.period_from else ''),
            ('', 'Period To', application.period_to.isoformat() if application.period_to else ''),
            ('', 'Status', application.status.value),
        ]
        lines = [(line, label, _number(amount)) for line, label, amount in g702_rows(calculation.summary)]
        summary_df = pd.DataFrame(header + lines, columns=['Line', 'Description', 'Amount'])
        summary_df.to_excel(writer, sheet_name='G702 Summary', index=False)

    def _export_continuation_sheet(self, writer: pd.ExcelWriter, calculation: PayAppCalculation) -> None:
        rows = [
            [
                item.item_number,
                item.description,
                _number(item.scheduled_value),
                _number(item.work_completed_previous),
                _number(item.work_completed_this_period),
                _number(item.materials_stored),
                _number(item.total_completed_and_stored),
                _number(item.percent_complete),
                _number(item.balance_to_finish),
                _number(item.retainage),
            ]
            for item in calculation.line_items
        ]

        totals = calculation.totals
        rows.append([
            'Total',
            '',
            _number(totals.total_scheduled_value),
            _number(totals.total_work_previous),
            _number(totals.total_work_this_period),
            _number(totals.total_materials_stored),
            _number(totals.total_completed_and_stored),
            None,
            _number(totals.total_balance_to_finish),
            _number(calculation.summary.line5c_total_retainage),
        ])

        continuation_df = pd.DataFrame(rows, columns=G703_COLUMNS)
        continuation_df.to_excel(writer, sheet_name='G703 Continuation', index=False)

    def _export_change_orders_sheet(self, writer: pd.ExcelWriter, change_orders: Iterable[ChangeOrder]) -> None:
        rows = [
            [
                co.co_number,
                co.description,
                _number(co.amount),
                co.status.value,
                co.date_approved.isoformat() if co.date_approved else '',
            ]
            for co in sorted(change_orders, key=lambda co: co.co_number)
        ]
        co_df = pd.DataFrame(rows, columns=['CO #', 'Description', 'Amount', 'Status', 'Date Approved'])
        co_df.to_excel(writer, sheet_name='Change Orders', index=False)

    def _export_validation_sheet(self, writer: pd.ExcelWriter, calculation: PayAppCalculation) -> None:
        validation = calculation.validation
        rows = [
            [severity, issue.code, issue.line_item or '', issue.message, 'Yes' if issue.can_override else 'No']
            for severity, issues in (('Error', validation.errors), ('Warning', validation.warnings))
            for issue in issues
        ]
        if not rows:
            rows.append(['OK', '', '', 'No validation issues.', ''])
        validation_df = pd.DataFrame(rows, columns=['Severity', 'Code', 'Item', 'Message', 'Can Override'])
        validation_df.to_excel(writer, sheet_name='Validation', index=False)

    def _format_sheet(self, worksheet: openpyxl.worksheet.worksheet.Worksheet) -> None:
        """Apply formatting to a worksheet.

        Args:
            worksheet: The worksheet to format
        """
        header_font = Font(bold=True, size=12, color="FFFFFF")
        header_fill = PatternFill(start_color="4F81BD", end_color="4F81BD", fill_type="solid")
        header_alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)
        thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

        for cell in worksheet[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = thin_border

        for row in worksheet.iter_rows(min_row=2):
            for cell in row:
                cell.border = thin_border
                if isinstance(cell.value, float):
                    header = worksheet.cell(row=1, column=cell.column).value
                    cell.number_format = '0.00%' if header == '% Complete (H)' else '#,##0.00'

    def _auto_adjust_columns(self, worksheet: openpyxl.worksheet.worksheet.Worksheet) -> None:
        """Auto-adjust column widths based on content.

        Args:
            worksheet: The worksheet to adjust
        """
        dims = {}
        for row in worksheet.rows:
            for cell in row:
                if cell.value:
                    dims[cell.column_letter] = max(dims.get(cell.column_letter, 0), len(str(cell.value)) + 2)

        # Limit max width to 50 characters
        for col, width in dims.items():
            worksheet.column_dimensions[col].width = min(width, 50)
