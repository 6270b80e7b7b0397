"""
Executive summary export tests (xlsx / csv).

Covers:
  - export_summary_xlsx returns a loadable workbook with header info and
    a 12-month metric table
  - approval cells are coloured by sign-off state
  - export_summary_csv has one line per month plus TOTAL_AVERAGE
  - the summary endpoint serves json, xlsx and csv and rejects other formats
"""

import csv
import io

import pytest
from openpyxl import load_workbook

from pms.services import export_service
from pms.services.executive_summary import (
    AchievementFigure,
    ActivityFigure,
    MonthlyApprovalFigure,
    summarize,
)


class _Year:
    year = 2025


@pytest.fixture()
def summary():
    s = summarize(
        _Year(),
        [ActivityFigure(1, 0.2), ActivityFigure(2, 0.8)],
        {3: [AchievementFigure(1, 3, 10, "COUNT"), AchievementFigure(2, 3, 0, "COUNT")]},
        [MonthlyApprovalFigure(3, "APPROVED"), MonthlyApprovalFigure(4, "REJECTED")],
    )
    s.header = {"ipp_id": "IPP-X", "npk": "10001", "username": "Owner One",
                "department": "Finance", "category": "Staff"}
    return s


# ── xlsx ────────────────────────────────────────────────────────────────────


class TestXlsx:
    def test_workbook_layout(self, summary):
        wb = load_workbook(export_service.export_summary_xlsx(summary))
        ws = wb["Executive Summary"]
        assert "IPP-X" in ws["A1"].value
        labels = {ws.cell(row=r, column=1).value: ws.cell(row=r, column=2).value for r in range(4, 9)}
        assert labels["Name"] == "Owner One"
        assert labels["Department"] == "Finance"
        assert labels["Total Average"] == "16.67%"

        header = [ws.cell(row=10, column=c).value for c in range(1, 15)]
        assert header[0] == "Metric (2025)"
        assert header[1:13] == list(export_service.MONTH_NAMES)
        assert header[13] == "TOT/AVG"

    def test_metric_rows(self, summary):
        ws = load_workbook(export_service.export_summary_xlsx(summary))["Executive Summary"]
        rows = {ws.cell(row=r, column=1).value: r for r in range(11, 20)}
        assert ws.cell(row=rows["Count"], column=4).value == 2
        assert ws.cell(row=rows["Achieve"], column=4).value == 1
        assert ws.cell(row=rows["Achieve Weight (W x A)"], column=4).value == "200.0%"
        assert ws.cell(row=rows["Total Activity"], column=14).value == 24

    def test_approval_fill(self, summary):
        ws = load_workbook(export_service.export_summary_xlsx(summary))["Executive Summary"]
        approval_row = 19
        assert ws.cell(row=approval_row, column=1).value == "Approval by Dept Head"
        assert ws.cell(row=approval_row, column=4).value == "APPROVED"
        assert ws.cell(row=approval_row, column=4).fill.start_color.rgb.endswith("BBF7D0")
        assert ws.cell(row=approval_row, column=5).fill.start_color.rgb.endswith("FECACA")


# ── csv ─────────────────────────────────────────────────────────────────────


class TestCsv:
    def test_rows(self, summary):
        rows = list(csv.reader(io.StringIO(export_service.export_summary_csv(summary))))
        assert rows[0][0] == "ipp_id"
        assert rows[0][-1] == "monthly_approval"
        assert len(rows) == 14
        march = rows[3]
        assert march[:3] == ["IPP-X", "2025", "3"]
        assert march[8] == "200.00"
        assert march[9] == "0.5000"
        assert march[10] == "APPROVED"
        assert rows[-1][2] == "TOTAL_AVERAGE"
        assert rows[-1][8] == "16.67"


# ── endpoint ────────────────────────────────────────────────────────────────


class TestSummaryEndpoint:
    @pytest.fixture()
    def approved(self, make_ipp):
        return make_ipp(submitted=True, verify="VERIFIED", approval="APPROVED")

    def test_json(self, client, approved, operation_headers):
        res = client.get(f"/api/v1/ipps/{approved.id}/executive-summary", headers=operation_headers)
        assert res.status_code == 200
        data = res.get_json()
        assert data["ipp_id"] == approved.id
        assert len(data["summary"]) == 12
        assert data["total_average"] == 0

    def test_xlsx(self, client, approved, operation_headers):
        res = client.get(f"/api/v1/ipps/{approved.id}/executive-summary?format=xlsx", headers=operation_headers)
        assert res.status_code == 200
        assert "spreadsheetml" in res.content_type
        assert f"executive_summary_{approved.id}.xlsx" in res.headers["Content-Disposition"]
        load_workbook(io.BytesIO(res.data))

    def test_csv(self, client, approved, owner_headers):
        res = client.get(f"/api/v1/ipps/{approved.id}/executive-summary?format=csv", headers=owner_headers)
        assert res.status_code == 200
        assert res.content_type.startswith("text/csv")
        assert res.data.decode().startswith("ipp_id,year,month")

    def test_unsupported_format(self, client, approved, operation_headers):
        res = client.get(f"/api/v1/ipps/{approved.id}/executive-summary?format=pdf", headers=operation_headers)
        assert res.status_code == 400

    def test_not_approved(self, client, make_ipp, operation_headers):
        ipp = make_ipp(submitted=True, verify="VERIFIED")
        res = client.get(f"/api/v1/ipps/{ipp.id}/executive-summary", headers=operation_headers)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"
