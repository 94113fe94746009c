"""End-to-end tests for the session, configuration and validation APIs."""

import pytest
from fastapi.testclient import TestClient

from firewire.circuit.manager import CircuitManager
from firewire.main import app
from firewire.schemas.circuit import DeviceRecord
from firewire.services.session_service import EditingSession, session_view


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


def _device(ident: str, current="30 mA", distance: float = 50.0) -> dict:
    return {
        "identifier": ident,
        "name": f"Horn Strobe {ident}",
        "alarm_current": current,
        "device_type": "Signal",
        "distance": distance,
    }


def _new_session(client, **parameters) -> str:
    resp = client.post("/api/sessions/", json={"parameters": parameters})
    assert resp.status_code == 201
    return resp.json()["session_id"]


def _build(client, session_id: str) -> dict:
    for ident in ("D1", "D2", "D3"):
        resp = client.post(f"/api/sessions/{session_id}/devices/main", json=_device(ident))
        assert resp.status_code == 200
    client.post(f"/api/sessions/{session_id}/branches", json={"identifier": "D2"})
    client.post(f"/api/sessions/{session_id}/devices/branch", json=_device("B1", 0.05, 20.0))
    resp = client.post(f"/api/sessions/{session_id}/branches/end")
    return resp.json()


# ═══════════════════════════════════════════════════════════
# Health
# ═══════════════════════════════════════════════════════════


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["database"] is True


# ═══════════════════════════════════════════════════════════
# Sessions
# ═══════════════════════════════════════════════════════════


class TestSessions:
    def test_create_defaults(self, client):
        resp = client.post("/api/sessions/")
        assert resp.status_code == 201
        body = resp.json()
        assert body["mode"] == "main"
        assert body["parameters"]["wire_gauge"] == "16 AWG"
        assert body["nodes"][0]["name"] == "Supply Panel"
        assert len(body["nodes"]) == 1
        assert body["totals"]["max_distance"] is None

    def test_create_with_overrides(self, client):
        resp = client.post(
            "/api/sessions/", json={"parameters": {"wire_gauge": "14", "min_voltage": 18}}
        )
        params = resp.json()["parameters"]
        assert params["wire_gauge"] == "14 AWG"
        assert params["resistance"] == 2.525
        assert params["min_voltage"] == 18.0

    def test_build_circuit(self, client):
        session_id = _new_session(client)
        body = _build(client, session_id)
        assert body["main_circuit"] == ["D1", "D2", "D3"]
        assert body["branches"] == {"D2": ["B1"]}
        assert body["branch_names"] == {"D2": "T-Tap 1"}
        assert body["active_tap_point"] == "D2"
        assert body["totals"]["total_load"] == pytest.approx(0.14)

        nodes = body["nodes"]
        assert [n["identifier"] for n in nodes] == [None, "D1", "D2", "D3", "B1"]
        d1 = nodes[1]
        assert d1["parent"] is None
        assert d1["abbreviation"] == "H/S"
        assert d1["accumulated_load"] == pytest.approx(0.14)
        assert [n["identifier"] for n in nodes if n["parent"] == "D2"] == ["D3", "B1"]
        assert [n["depth"] for n in nodes] == [0, 1, 2, 3, 3]

    def test_duplicate_device_conflict(self, client):
        session_id = _new_session(client)
        client.post(f"/api/sessions/{session_id}/devices/main", json=_device("D1"))
        resp = client.post(f"/api/sessions/{session_id}/devices/main", json=_device("D1"))
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "E_DUPLICATE_DEVICE"

    def test_branch_add_without_tap_conflict(self, client):
        session_id = _new_session(client)
        resp = client.post(f"/api/sessions/{session_id}/devices/branch", json=_device("B1"))
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "E_WRONG_MODE"

    def test_negative_current_rejected(self, client):
        session_id = _new_session(client)
        resp = client.post(
            f"/api/sessions/{session_id}/devices/main",
            json={"identifier": "D1", "name": "Horn", "alarm_current": -0.5},
        )
        assert resp.status_code == 422
        state = client.get(f"/api/sessions/{session_id}").json()
        assert state["main_circuit"] == []

    def test_long_chain_view(self):
        manager = CircuitManager()
        for i in range(1, 1001):
            manager.add_device_to_main(
                f"D{i}",
                DeviceRecord(identifier=f"D{i}", name=f"Strobe {i}", alarm_current=0.001),
                5.0,
            )
        view = session_view(EditingSession(session_id="long", manager=manager))
        assert len(view.nodes) == 1001
        assert view.nodes[-1].depth == 1000
        assert view.nodes[-1].parent == "D999"
        assert '"D1000"' in view.model_dump_json()

    def test_remove_cascades(self, client):
        session_id = _new_session(client)
        _build(client, session_id)
        resp = client.delete(f"/api/sessions/{session_id}/devices/D2")
        assert resp.status_code == 200
        body = resp.json()
        assert body["position"] == 2
        assert sorted(body["removed"]) == ["B1", "D2", "D3"]

        state = client.get(f"/api/sessions/{session_id}").json()
        assert state["main_circuit"] == ["D1"]
        assert state["branches"] == {}

    def test_remove_unknown_conflict(self, client):
        session_id = _new_session(client)
        resp = client.delete(f"/api/sessions/{session_id}/devices/nope")
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "E_UNKNOWN_DEVICE"

    def test_set_distance_updates_voltage(self, client):
        session_id = _new_session(client)
        body = _build(client, session_id)
        before = body["nodes"][1]["voltage"]
        resp = client.put(
            f"/api/sessions/{session_id}/devices/D1/distance", json={"distance": 500}
        )
        after = resp.json()["nodes"][1]["voltage"]
        assert after < before

    def test_resume_and_clear(self, client):
        session_id = _new_session(client)
        _build(client, session_id)
        resp = client.post(f"/api/sessions/{session_id}/branches/resume")
        assert resp.json()["mode"] == "branch"
        resp = client.post(f"/api/sessions/{session_id}/clear")
        assert resp.json()["main_circuit"] == []
        assert resp.json()["mode"] == "main"

    def test_validate_and_report(self, client):
        session_id = _new_session(client)
        _build(client, session_id)
        resp = client.post(f"/api/sessions/{session_id}/validate")
        assert resp.status_code == 200
        assert resp.json()["status"] == "VALID"

        report = client.get(f"/api/sessions/{session_id}/report").json()
        assert [r["identifier"] for r in report["devices"]] == ["D1", "D2", "D3", "B1"]
        assert report["is_valid"] is True

    def test_unknown_session(self, client):
        assert client.get("/api/sessions/missing").status_code == 404

    def test_close_session(self, client):
        session_id = _new_session(client)
        assert client.delete(f"/api/sessions/{session_id}").status_code == 204
        assert client.get(f"/api/sessions/{session_id}").status_code == 404


# ═══════════════════════════════════════════════════════════
# Configurations
# ═══════════════════════════════════════════════════════════


class TestConfigurations:
    def test_save_list_and_load(self, client):
        session_id = _new_session(client)
        _build(client, session_id)
        resp = client.post(
            f"/api/sessions/{session_id}/save",
            json={"name": "Level 3 NAC", "project_name": "API Tower"},
        )
        assert resp.status_code == 201
        summary = resp.json()
        assert summary["total_devices"] == 4
        assert summary["total_branches"] == 1

        listing = client.get(
            "/api/configurations/", params={"project_name": "API Tower"}
        ).json()
        assert listing["total"] == 1
        assert listing["configurations"][0]["id"] == summary["id"]

        other = _new_session(client)
        resp = client.post(
            f"/api/sessions/{other}/load", json={"configuration_id": summary["id"]}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["main_circuit"] == ["D1", "D2", "D3"]
        assert body["configuration_id"] == summary["id"]

    def test_resave_overwrites(self, client):
        session_id = _new_session(client)
        client.post(f"/api/sessions/{session_id}/devices/main", json=_device("R1"))
        first = client.post(
            f"/api/sessions/{session_id}/save",
            json={"name": "Resave", "project_name": "Resave Project"},
        ).json()
        second = client.post(
            f"/api/sessions/{session_id}/save",
            json={"name": "Resave v2", "project_name": "Resave Project"},
        ).json()
        assert first["id"] == second["id"]
        listing = client.get(
            "/api/configurations/", params={"project_name": "Resave Project"}
        ).json()
        assert listing["total"] == 1

    def test_export_import_search_delete(self, client):
        session_id = _new_session(client)
        client.post(f"/api/sessions/{session_id}/devices/main", json=_device("EXP-1"))
        saved = client.post(
            f"/api/sessions/{session_id}/save", json={"name": "Export me"}
        ).json()

        exported = client.get(f"/api/configurations/{saved['id']}/export")
        assert exported.status_code == 200
        assert exported.headers["content-type"].startswith("application/json")

        imported = client.post("/api/configurations/import", json=exported.json())
        assert imported.status_code == 201
        assert imported.json()["name"] == "Export me (Imported)"

        found = client.get(
            "/api/configurations/search", params={"identifier": "EXP-1"}
        ).json()
        assert {c["id"] for c in found} == {saved["id"], imported.json()["id"]}

        assert client.delete(f"/api/configurations/{saved['id']}").status_code == 204
        assert client.get(f"/api/configurations/{saved['id']}").status_code == 404

    def test_import_malformed(self, client):
        resp = client.post("/api/configurations/import", json={"name": "no tree"})
        assert resp.status_code == 422

    def test_load_missing_configuration(self, client):
        session_id = _new_session(client)
        resp = client.post(
            f"/api/sessions/{session_id}/load", json={"configuration_id": "missing"}
        )
        assert resp.status_code == 404


# ═══════════════════════════════════════════════════════════
# Stateless validation
# ═══════════════════════════════════════════════════════════


class TestValidationEndpoints:
    def test_validate_inline(self, client):
        session_id = _new_session(client)
        client.post(
            f"/api/sessions/{session_id}/devices/main", json=_device("V1", 3.0, 50.0)
        )
        saved = client.post(
            f"/api/sessions/{session_id}/save", json={"name": "Overloaded"}
        ).json()
        document = client.get(f"/api/configurations/{saved['id']}").json()

        resp = client.post("/api/validation/inline", json=document)
        assert resp.status_code == 200
        codes = [e["code"] for e in resp.json()["errors"]]
        assert "E_LOAD_EXCEEDS_USABLE" in codes

        resp = client.post(f"/api/validation/configurations/{saved['id']}")
        assert resp.json()["status"] == "INVALID"
