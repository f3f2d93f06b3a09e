"""
Tests for the Excel exporter.
"""

from datetime import date
from decimal import Decimal

import openpyxl
import pytest

from cpas.billing.models import ChangeOrder, ChangeOrderStatus
from cpas.reporting.excel_exporter import SHEET_NAMES, ExcelExporter, g702_rows


def rows_by_label(worksheet, label_column=2, value_column=3):
    return {
        worksheet.cell(row=r, column=label_column).value: worksheet.cell(row=r, column=value_column).value
        for r in range(2, worksheet.max_row + 1)
    }


@pytest.fixture
def change_orders():
    return [
        ChangeOrder(1, "Added fence", Decimal("5000"), ChangeOrderStatus.PENDING),
        ChangeOrder(2, "Credit", Decimal("-1000"), ChangeOrderStatus.REJECTED),
    ]


class TestExportPayApplication:
    """Tests for exporting one pay application."""

    def test_workbook_sheets(self, tmp_path, project, first_application, change_orders):
        output_path = tmp_path / "app1.xlsx"

        result = ExcelExporter().export_pay_application(output_path, project, first_application, change_orders)

        assert result["path"] == str(output_path)
        assert result["sheets"] == SHEET_NAMES
        workbook = openpyxl.load_workbook(output_path)
        assert workbook.sheetnames == SHEET_NAMES

    def test_summary_values(self, tmp_path, project, first_application):
        output_path = tmp_path / "app1.xlsx"
        ExcelExporter().export_pay_application(output_path, project, first_application)

        summary = rows_by_label(openpyxl.load_workbook(output_path)["G702 Summary"])

        assert summary["Project"] == "Main Street Office"
        assert summary["Status"] == "submitted"
        assert summary["Total Completed and Stored to Date"] == 20000
        assert summary["Total Retainage"] == 2000
        assert summary["Current Payment Due"] == 18000
        assert summary["Balance to Finish, Including Retainage"] == 82000

    def test_continuation_rows_and_total(self, tmp_path, project, first_application):
        output_path = tmp_path / "app1.xlsx"
        ExcelExporter().export_pay_application(output_path, project, first_application)

        sheet = openpyxl.load_workbook(output_path)["G703 Continuation"]
        header = [cell.value for cell in sheet[1]]
        first_row = [cell.value for cell in sheet[2]]
        total_row = [cell.value for cell in sheet[3]]

        assert header[0] == "Item"
        assert first_row[0] == "1"
        assert first_row[header.index("This Period (E)")] == 20000
        assert first_row[header.index("% Complete (H)")] == pytest.approx(0.2)
        assert first_row[header.index("Balance to Finish (I)")] == 80000
        assert total_row[0] == "Total"
        assert total_row[header.index("Completed & Stored (G)")] == 20000

    def test_change_orders_sheet(self, tmp_path, project, first_application, change_orders):
        output_path = tmp_path / "app1.xlsx"
        ExcelExporter().export_pay_application(output_path, project, first_application, change_orders)

        sheet = openpyxl.load_workbook(output_path)["Change Orders"]
        statuses = [sheet.cell(row=r, column=4).value for r in range(2, sheet.max_row + 1)]

        assert statuses == ["pending", "rejected"]

    def test_validation_sheet_lists_warnings(self, tmp_path, project_data, project, submit):
        _, application = submit(project_data, {"sov-1": Decimal("100500")})
        output_path = tmp_path / "app1.xlsx"
        ExcelExporter().export_pay_application(output_path, project, application)

        sheet = openpyxl.load_workbook(output_path)["Validation"]

        assert sheet.cell(row=2, column=1).value == "Warning"
        assert sheet.cell(row=2, column=2).value == "line_item_overbilled"

    def test_clean_application_has_ok_row(self, tmp_path, project, first_application):
        output_path = tmp_path / "app1.xlsx"
        ExcelExporter().export_pay_application(output_path, project, first_application)

        sheet = openpyxl.load_workbook(output_path)["Validation"]

        assert sheet.cell(row=2, column=1).value == "OK"


def test_g702_rows_in_form_order(first_application):
    lines = [line for line, _, _ in g702_rows(first_application.summary)]

    assert lines == ["1", "2", "3", "4", "5a", "5b", "5c", "6", "7", "8", "9"]
