"""Tests for the quote and distribution HTTP routes."""
from fastapi.testclient import TestClient

# Conftest adds backend dir to path: use direct imports (no backend. prefix)
import main
from main import app
from reporting.template_source import TemplateFetchError
from services.quote_state import QuoteStateStore

client = TestClient(app)


def _preview_body() -> dict:
    return {
        "summary": {"sumPrice": 500, "firstRbPrice": 600, "disRbPrice": 540, "acceSum": 0, "mulTimes": 2},
        "items": [
            {"width": 0, "height": 0},
            {"width": 10, "height": 20, "fabricType": "SN", "linePrice": 100, "fabric": "Vista"},
        ],
        "overrides": {"quoteId": "Q-77", "customerName": "Robin", "finalOfferPrice": "1100"},
        "fees": {"deliveryFeeExcluded": True},
    }


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "X-Request-Id" in r.headers


def test_quote_preview_returns_html():
    r = client.post("/quote/preview", json=_preview_body())
    assert r.status_code == 200
    assert "text/html" in r.headers["content-type"]
    html = r.text
    assert "{{" not in html
    assert "Q-77" in html
    assert "$60.00" in html
    assert "$200.00" in html
    assert "$1100.00" in html
    assert 'class="align-right is-excluded"' in html
    assert "Installation Accessories" not in html


def test_quote_preview_template_failure_502(monkeypatch):
    async def broken():
        raise TemplateFetchError("Failed to load quote-template.html")

    monkeypatch.setattr(main, "load_templates", broken)
    r = client.post("/quote/preview", json=_preview_body())
    assert r.status_code == 502
    assert "Failed to load" in r.json()["detail"]


def test_quote_preview_composition_failure_500(monkeypatch):
    async def no_body():
        return "<html><head></head><body></body></html>", "<div>no body</div>"

    monkeypatch.setattr(main, "load_templates", no_body)
    r = client.post("/quote/preview", json=_preview_body())
    assert r.status_code == 500


def test_state_driven_print(monkeypatch):
    monkeypatch.setattr(main, "STORE", QuoteStateStore())
    assert client.put("/quote/state/items", json=[{"width": 1, "height": 1, "linePrice": 10}]).status_code == 200
    assert client.put("/quote/state/summary", json={"gst": 220}).status_code == 200
    r = client.post("/quote/print", json={"fields": {"f3-quote-id": "Q-5"}})
    assert r.status_code == 200
    assert "Q-5" in r.text
    assert "$220.00" in r.text


def test_fee_toggle_and_f2_change(monkeypatch):
    monkeypatch.setattr(main, "STORE", QuoteStateStore())
    r = client.post("/quote/state/fees/install/toggle")
    assert r.status_code == 200
    assert r.json()["install_fee_excluded"] is True
    assert client.post("/quote/state/fees/bogus/toggle").status_code == 400

    r = client.post("/quote/state/f2", json={"id": "f2-b14-install-qty", "value": "4"})
    assert r.status_code == 200
    assert r.json()["install_qty"] == 4
    assert client.post("/quote/state/f2", json={"id": "nope", "value": "1"}).status_code == 400


def test_remote_distribution_dialog_flow(monkeypatch):
    store = QuoteStateStore()
    store.set_drive_remote_count(5)
    monkeypatch.setattr(main, "STORE", store)

    r = client.post("/distributions/remote")
    assert r.status_code == 200
    dialog = r.json()
    assert dialog["total"] == 5
    assert [f["value"] for f in dialog["fields"]] == ["5", "0"]
    dialog_id = dialog["dialog_id"]
    first, second = (f["id"] for f in dialog["fields"])

    r = client.post(f"/distributions/{dialog_id}/edit", json={"field": first, "value": "2"})
    assert [f["value"] for f in r.json()["fields"]] == ["2", "3"]

    r = client.post(f"/distributions/{dialog_id}/confirm")
    assert r.status_code == 200
    assert r.json()["committed"] == {first: 2, second: 3}
    assert store.snapshot().distribution.remote_16ch_qty == 3

    # reopened dialog starts from the committed split
    reopened = client.post("/distributions/remote").json()
    assert [f["value"] for f in reopened["fields"]] == ["2", "3"]


def test_distribution_confirm_rejection_keeps_dialog(monkeypatch):
    store = QuoteStateStore()
    store.set_drive_remote_count(5)
    monkeypatch.setattr(main, "STORE", store)

    dialog = client.post("/distributions/remote").json()
    dialog_id = dialog["dialog_id"]
    first = dialog["fields"][0]["id"]
    client.post(f"/distributions/{dialog_id}/edit", json={"field": first, "value": "x"})

    r = client.post(f"/distributions/{dialog_id}/confirm")
    assert r.status_code == 422
    assert store.snapshot().distribution.remote_1ch_qty is None

    r = client.post(f"/distributions/{dialog_id}/cancel")
    assert r.json()["state"] == "cancelled"
    assert client.post(f"/distributions/{dialog_id}/confirm").status_code == 404


def test_distribution_unknown_field_and_dialog():
    dialog = client.post("/distributions/dual").json()
    r = client.post(f"/distributions/{dialog['dialog_id']}/edit", json={"field": "nope", "value": "1"})
    assert r.status_code == 400
    assert client.post("/distributions/missing/cancel").status_code == 404


def test_reopening_a_distribution_replaces_the_open_dialog(monkeypatch):
    store = QuoteStateStore()
    store.set_drive_remote_count(3)
    monkeypatch.setattr(main, "STORE", store)
    monkeypatch.setattr(main, "_DIALOGS", {})

    ids = [client.post("/distributions/remote").json()["dialog_id"] for _ in range(50)]
    dual_id = client.post("/distributions/dual").json()["dialog_id"]

    assert set(main._DIALOGS) == {ids[-1], dual_id}
    assert client.post(f"/distributions/{ids[0]}/confirm").status_code == 404

    r = client.post(f"/distributions/{ids[-1]}/confirm")
    assert r.status_code == 200
    assert store.snapshot().distribution.remote_1ch_qty == 3
    assert set(main._DIALOGS) == {dual_id}
