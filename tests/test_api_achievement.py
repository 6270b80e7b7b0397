"""
Achievement API tests — monthly upsert, verification, evidence, drill-through.
"""

import pytest

BASE = "/api/v1"


@pytest.fixture()
def plan(make_ipp):
    return make_ipp(submitted=True, verify="VERIFIED", approval="APPROVED")


@pytest.fixture()
def activity_url(plan):
    return f"{BASE}/ipps/{plan.id}/activities/{plan.activities[0].id}"


class TestAchievementEndpoints:
    def test_put_is_idempotent(self, client, activity_url, owner_headers):
        first = client.put(f"{activity_url}/achievements/3", headers=owner_headers,
                           json={"value": 80, "status": "COUNT"})
        assert first.status_code == 200
        assert first.get_json()["verify"] == "PENDING"
        assert first.get_json()["score"] == pytest.approx(24.0)

        second = client.put(f"{activity_url}/achievements/3", headers=owner_headers,
                            json={"achievement_value": 90, "status": "COUNT"})
        assert second.get_json()["id"] == first.get_json()["id"]
        assert second.get_json()["value"] == 90

        res = client.get(f"{activity_url}/achievements", headers=owner_headers)
        assert res.get_json()["total"] == 1

    def test_get_single_month(self, client, activity_url, owner_headers):
        assert client.get(f"{activity_url}/achievements/4", headers=owner_headers).status_code == 404
        client.put(f"{activity_url}/achievements/4", headers=owner_headers, json={"value": 1, "status": "COUNT"})
        res = client.get(f"{activity_url}/achievements/4", headers=owner_headers)
        assert res.status_code == 200
        assert res.get_json()["month"] == 4

    @pytest.mark.parametrize("month,code", [("13", 422), ("0", 422), ("march", 400)])
    def test_bad_month(self, client, activity_url, owner_headers, month, code):
        res = client.put(f"{activity_url}/achievements/{month}", headers=owner_headers,
                         json={"value": 1, "status": "COUNT"})
        assert res.status_code == code

    def test_reviewer_cannot_enter_values(self, client, activity_url, operation_headers):
        res = client.put(f"{activity_url}/achievements/1", headers=operation_headers,
                         json={"value": 1, "status": "COUNT"})
        assert res.status_code == 403

    def test_verification(self, client, activity_url, owner_headers, operation_headers):
        client.put(f"{activity_url}/achievements/2", headers=owner_headers, json={"value": 5, "status": "COUNT"})
        res = client.patch(f"{activity_url}/achievements/2/verification", headers=operation_headers,
                           json={"status": "VERIFIED"})
        assert res.status_code == 200
        assert res.get_json()["verify"] == "VERIFIED"

        res = client.patch(f"{activity_url}/achievements/2/verification", headers=owner_headers,
                           json={"status": "VERIFIED"})
        assert res.status_code == 403


class TestEvidenceEndpoints:
    def test_upload_list_delete(self, client, activity_url, owner_headers):
        client.put(f"{activity_url}/achievements/6", headers=owner_headers, json={"value": 5, "status": "COUNT"})

        res = client.post(f"{activity_url}/achievements/6/evidences", headers=owner_headers,
                          json={"file_path": "https://files/x/june%20report.pdf", "fileSize": 2048,
                                "mimeType": "application/pdf"})
        assert res.status_code == 201
        evidence = res.get_json()
        assert evidence["file_name"] == "june report.pdf"
        assert evidence["file_size_display"] == "2 KB"

        res = client.get(f"{activity_url}/achievements/6/evidences", headers=owner_headers)
        assert res.get_json()["total"] == 1

        res = client.delete(f"{BASE}/evidences/{evidence['id']}", headers=owner_headers)
        assert res.status_code == 200
        res = client.delete(f"{BASE}/evidences/{evidence['id']}", headers=owner_headers)
        assert res.status_code == 404

    def test_upload_needs_reported_month(self, client, activity_url, owner_headers):
        res = client.post(f"{activity_url}/achievements/7/evidences", headers=owner_headers,
                          json={"file_reference": "a.pdf"})
        assert res.status_code == 404

    def test_upload_needs_reference(self, client, activity_url, owner_headers):
        client.put(f"{activity_url}/achievements/6", headers=owner_headers, json={"value": 5, "status": "COUNT"})
        res = client.post(f"{activity_url}/achievements/6/evidences", headers=owner_headers, json={})
        assert res.status_code == 400

    def test_unreported_month_lists_empty(self, client, activity_url, owner_headers):
        res = client.get(f"{activity_url}/achievements/11/evidences", headers=owner_headers)
        assert res.status_code == 200
        assert res.get_json()["items"] == []


class TestDetail:
    def test_twelve_months(self, client, activity_url, owner_headers, operation_headers):
        client.put(f"{activity_url}/achievements/1", headers=owner_headers, json={"value": 5, "status": "COUNT"})
        res = client.get(f"{activity_url}/detail", headers=operation_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert len(body["months"]) == 12
        assert body["months"][0]["achievement"]["value"] == 5
        assert body["degraded"] == []

    def test_other_user_forbidden(self, client, activity_url, other_headers):
        assert client.get(f"{activity_url}/detail", headers=other_headers).status_code == 403

    def test_unapproved_plan_conflict(self, client, make_ipp, owner_headers):
        pending = make_ipp("IPP-T-002", submitted=True, verify="VERIFIED")
        url = f"{BASE}/ipps/{pending.id}/activities/{pending.activities[0].id}/detail"
        res = client.get(url, headers=owner_headers)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"
