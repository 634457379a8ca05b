"""
HTTP API tests for /api/v1/declarations and /api/v1/org.

Exercises the blueprint layer: identity header, request parsing, error
envelope ({"error", "code", "details"}) and status codes.
"""

import pytest

BASE = "/api/v1/declarations"


@pytest.fixture()
def created(client, auth, teacher, make_payload, org):
    res = client.post(BASE, json=make_payload(org.cs), headers=auth(teacher))
    assert res.status_code == 201
    return res.get_json()


class TestIdentity:
    def test_missing_header_is_401(self, client):
        res = client.get(BASE)
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_unknown_user_is_401(self, client, org):
        res = client.get(BASE, headers={"X-User-Id": "nobody"})
        assert res.status_code == 401

    def test_health_needs_no_identity(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_request_id_is_echoed(self, client):
        res = client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
        assert float(res.headers["X-Request-Duration-Ms"]) >= 0

    def test_unknown_route_uses_error_envelope(self, client):
        res = client.get("/api/v1/nowhere")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


class TestCreate:
    def test_create_returns_pending(self, created, teacher):
        assert created["status"] == "pending"
        assert created["author_id"] == teacher.id
        assert created["author_name"] == "Amina Diallo"
        assert created["hours"] == 3.5
        assert created["version"] == 1
        assert created["can_edit"] is True
        assert created["available_actions"] == []

    def test_create_over_cap_is_422(self, client, auth, teacher, make_payload, org):
        res = client.post(BASE, json=make_payload(org.cs, hours_cm=5, hours_td=4), headers=auth(teacher))
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "hours" in body["details"]

    def test_missing_required_field_is_422(self, client, auth, teacher, make_payload, org):
        res = client.post(BASE, json=make_payload(org.cs, course_element_id=None), headers=auth(teacher))
        assert res.status_code == 422
        assert "course_element_id" in res.get_json()["details"]

    def test_bad_date_is_422(self, client, auth, teacher, make_payload, org):
        res = client.post(BASE, json=make_payload(org.cs, date="next tuesday"), headers=auth(teacher))
        assert res.status_code == 422

    def test_european_date_format_is_accepted(self, client, auth, teacher, make_payload, org):
        res = client.post(BASE, json=make_payload(org.cs, date="02/03/2026"), headers=auth(teacher))
        assert res.status_code == 201
        assert res.get_json()["date"] == "2026-03-02"

    def test_empty_body_is_400(self, client, auth, teacher):
        res = client.post(BASE, data="", headers=auth(teacher))
        assert res.status_code == 400

    def test_director_cannot_create(self, client, auth, director, make_payload, org):
        res = client.post(BASE, json=make_payload(org.cs), headers=auth(director))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_head_own_department_fast_track(self, client, auth, head_cs, make_payload, org):
        res = client.post(BASE, json=make_payload(org.cs), headers=auth(head_cs))
        body = res.get_json()
        assert body["status"] == "registrar_verified"
        assert body["registrar_verified_by"] == head_cs.id


class TestTransition:
    def test_registrar_approves(self, client, auth, created, registrar):
        res = client.post(f"{BASE}/{created['id']}/transition",
                          json={"action": "approve", "version": 1}, headers=auth(registrar))
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "registrar_verified"
        assert body["version"] == 2

    def test_second_registrar_with_same_version_is_409(self, client, auth, created, registrar, other_registrar):
        body = {"action": "approve", "version": created["version"]}
        first = client.post(f"{BASE}/{created['id']}/transition", json=body, headers=auth(registrar))
        assert first.status_code == 200
        res = client.post(f"{BASE}/{created['id']}/transition", json=body, headers=auth(other_registrar))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STALE"

    def test_second_registrar_without_version_is_403(self, client, auth, created, registrar, other_registrar):
        client.post(f"{BASE}/{created['id']}/transition", json={"action": "approve"}, headers=auth(registrar))
        res = client.post(f"{BASE}/{created['id']}/transition",
                          json={"action": "reject", "reason": "dup"}, headers=auth(other_registrar))
        assert res.status_code == 403

    def test_stale_version_on_same_stage_is_409(self, client, auth, created, teacher, registrar):
        client.put(f"{BASE}/{created['id']}", json={"notes": "edited", "version": 1}, headers=auth(teacher))
        res = client.post(f"{BASE}/{created['id']}/transition",
                          json={"action": "approve", "version": 1}, headers=auth(registrar))
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_CONFLICT_STALE"
        assert body["details"]["expected_version"] == 1

    def test_if_match_header_carries_version(self, client, auth, created, teacher, registrar):
        client.put(f"{BASE}/{created['id']}", json={"notes": "edited"}, headers=auth(teacher))
        headers = {**auth(registrar), "If-Match": '"1"'}
        res = client.post(f"{BASE}/{created['id']}/transition", json={"action": "approve"}, headers=headers)
        assert res.status_code == 409

    def test_reject_without_reason_is_422(self, client, auth, created, registrar):
        res = client.post(f"{BASE}/{created['id']}/transition",
                          json={"action": "reject"}, headers=auth(registrar))
        assert res.status_code == 422

    def test_missing_action_is_422(self, client, auth, created, registrar):
        res = client.post(f"{BASE}/{created['id']}/transition", json={"reason": "x"}, headers=auth(registrar))
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    @pytest.mark.parametrize("action", [1, ["approve"], {"name": "approve"}])
    def test_non_string_action_is_422(self, client, auth, created, registrar, action):
        res = client.post(f"{BASE}/{created['id']}/transition",
                          json={"action": action}, headers=auth(registrar))
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_wrong_role_is_403(self, client, auth, created, director):
        res = client.post(f"{BASE}/{created['id']}/transition",
                          json={"action": "approve"}, headers=auth(director))
        assert res.status_code == 403

    def test_unknown_declaration_is_404(self, client, auth, registrar):
        res = client.post(f"{BASE}/does-not-exist/transition",
                          json={"action": "approve"}, headers=auth(registrar))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_bad_version_is_422(self, client, auth, created, registrar):
        res = client.post(f"{BASE}/{created['id']}/transition",
                          json={"action": "approve", "version": "abc"}, headers=auth(registrar))
        assert res.status_code == 422


class TestAuthorRoutes:
    def test_get_shows_available_actions_to_reviewer(self, client, auth, created, registrar):
        res = client.get(f"{BASE}/{created['id']}", headers=auth(registrar))
        assert res.get_json()["available_actions"] == ["approve", "reject"]

    def test_edit(self, client, auth, created, teacher):
        res = client.put(f"{BASE}/{created['id']}", json={"hours_tp": 2}, headers=auth(teacher))
        assert res.status_code == 200
        assert res.get_json()["hours"] == 5.5

    def test_edit_by_other_user_is_403(self, client, auth, created, head_cs):
        res = client.put(f"{BASE}/{created['id']}", json={"notes": "x"}, headers=auth(head_cs))
        assert res.status_code == 403

    def test_delete(self, client, auth, created, teacher):
        res = client.delete(f"{BASE}/{created['id']}", headers=auth(teacher))
        assert res.status_code == 200
        assert client.get(f"{BASE}/{created['id']}", headers=auth(teacher)).status_code == 404

    def test_resubmit(self, client, auth, created, teacher, registrar):
        client.post(f"{BASE}/{created['id']}/transition",
                    json={"action": "reject", "reason": "duplicate"}, headers=auth(registrar))
        res = client.post(f"{BASE}/{created['id']}/resubmit", json={}, headers=auth(teacher))
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "pending"
        assert body["rejection_reason"] is None

    def test_list_own_and_editable_filter(self, client, auth, created, teacher, registrar):
        res = client.get(BASE, headers=auth(teacher))
        assert res.get_json()["total"] == 1
        client.post(f"{BASE}/{created['id']}/transition", json={"action": "approve"}, headers=auth(registrar))
        res = client.get(f"{BASE}?editable=true", headers=auth(teacher))
        assert res.get_json()["total"] == 0

    def test_pending_and_stats(self, client, auth, created, registrar, teacher):
        res = client.get(f"{BASE}/pending", headers=auth(registrar))
        assert [d["id"] for d in res.get_json()["items"]] == [created["id"]]

        res = client.get(f"{BASE}/stats", headers=auth(teacher))
        assert res.get_json() == {"total_hours": 0.0, "pending": 1, "approved": 0, "rejected": 0}


class TestOrg:
    def test_list_departments(self, client, auth, teacher):
        res = client.get("/api/v1/org/departments", headers=auth(teacher))
        assert res.status_code == 200
        assert [d["name"] for d in res.get_json()["items"]] == ["Computer Science", "Mathematics"]

    def test_filter_by_parent(self, client, auth, teacher, org):
        res = client.get(f"/api/v1/org/tracks?parent_id={org.math.department.id}", headers=auth(teacher))
        items = res.get_json()["items"]
        assert len(items) == 1
        assert items[0]["department_id"] == org.math.department.id

    def test_unknown_kind_is_404(self, client, auth, teacher):
        assert client.get("/api/v1/org/campuses", headers=auth(teacher)).status_code == 404

    def test_parent_filter_on_root_is_422(self, client, auth, teacher):
        res = client.get("/api/v1/org/departments?parent_id=1", headers=auth(teacher))
        assert res.status_code == 422
