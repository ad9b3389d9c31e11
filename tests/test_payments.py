import json
import threading
from pathlib import Path

import pytest

from conftest import ADMIN_EMAIL
from utils.errors import NotFoundError


@pytest.fixture
def payment():
    return {"studentId": 1, "studentName": "Jane", "studentEmail": "jane@x.com", "amount": 400}


def _pay(client, headers, payload):
    r = client.post('/api/payments', json=payload, headers=headers)
    assert r.status_code == 200, r.get_json()
    return r.get_json()


def test_payments_require_token(client, payment):
    assert client.post('/api/payments', json=payment).status_code == 401
    assert client.get('/api/payments/list').status_code == 401
    assert client.get('/api/payments/download/REC1_abc').status_code == 401


def test_generate_receipt_and_download(app, client, auth_headers, payment):
    body = _pay(client, auth_headers, payment)
    assert body["success"] is True
    receipt_id = body["receiptId"]
    assert receipt_id.startswith("REC")
    assert body["amount"] == "400.00"
    assert body["receiptUrl"] == f"/api/payments/download/{receipt_id}"

    r = client.get(body["receiptUrl"], headers=auth_headers)
    assert r.status_code == 200
    assert r.mimetype == "application/pdf"
    assert len(r.data) > 0
    assert r.data.startswith(b"%PDF")
    assert r.headers["Content-Disposition"].startswith("attachment")

    record = app.extensions["receipt_service"].ledger.find_by_id(receipt_id)
    assert record.amount == "400.00"
    assert record.description == "Course Fee Payment"
    assert record.generated_by == ADMIN_EMAIL
    assert record.file_name == f"receipt_{receipt_id}.pdf"


def test_view_is_inline(client, auth_headers, payment):
    receipt_id = _pay(client, auth_headers, payment)["receiptId"]
    r = client.get(f"/api/payments/view/{receipt_id}", headers=auth_headers)
    assert r.status_code == 200
    assert r.headers["Content-Disposition"].startswith("inline")
    alt = client.get(f"/api/payments/receipt/{receipt_id}", headers=auth_headers)
    assert alt.status_code == 200
    assert alt.data == r.data


def test_receipt_ids_are_unique(client, auth_headers, payment):
    ids = {_pay(client, auth_headers, payment)["receiptId"] for _ in range(5)}
    assert len(ids) == 5


def test_generate_requires_fields(client, auth_headers, payment):
    r = client.post('/api/payments', json=dict(payment, studentEmail=""), headers=auth_headers)
    assert r.status_code == 400
    assert r.get_json()["code"] == "MissingRequiredFields"


@pytest.mark.parametrize("amount", [-1, "abc", "NaN", "1e30", 1e30])
def test_generate_rejects_bad_amounts(client, auth_headers, payment, amount):
    r = client.post('/api/payments', json=dict(payment, amount=amount), headers=auth_headers)
    assert r.status_code == 400
    assert r.get_json()["code"] == "InvalidValue"


def test_render_failure_is_reported(client, auth_headers, payment, monkeypatch):
    def boom(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("utils.receipts.render_receipt_pdf", boom)
    r = client.post('/api/payments', json=payment, headers=auth_headers)
    assert r.status_code == 500
    body = r.get_json()
    assert body["success"] is False
    assert body["code"] == "RenderError"
    assert body["error"] == "disk full"


def test_unknown_receipt_is_not_found(client, auth_headers):
    for path in ("download", "view", "receipt"):
        r = client.get(f"/api/payments/{path}/REC0_missing", headers=auth_headers)
        assert r.status_code == 404
        assert r.get_json()["code"] == "ReceiptNotFound"
    assert client.get('/api/payments/download/bad.id', headers=auth_headers).status_code == 404


def test_document_is_served_without_ledger_entry(app, client, auth_headers, payment):
    receipt_id = _pay(client, auth_headers, payment)["receiptId"]
    ledger = app.extensions["receipt_service"].ledger
    ledger.path.unlink()
    r = client.get(f"/api/payments/download/{receipt_id}", headers=auth_headers)
    assert r.status_code == 200


def test_ledger_file_path_is_used_when_document_moved(app, client, auth_headers, payment, tmp_path):
    receipt_id = _pay(client, auth_headers, payment)["receiptId"]
    service = app.extensions["receipt_service"]
    original = service.receipts_dir / f"receipt_{receipt_id}.pdf"
    moved = tmp_path / "archive" / original.name
    moved.parent.mkdir()
    original.rename(moved)
    records = json.loads(service.ledger.path.read_text())
    records[0]["filePath"] = str(moved)
    service.ledger.path.write_text(json.dumps(records))

    assert service.locate_document(receipt_id) == moved
    moved.unlink()
    with pytest.raises(NotFoundError):
        service.locate_document(receipt_id)


def test_list_receipts_hides_paths(client, auth_headers, payment):
    _pay(client, auth_headers, payment)
    _pay(client, auth_headers, dict(payment, amount="99.5", description="Books"))
    r = client.get('/api/payments/list', headers=auth_headers)
    assert r.status_code == 200
    body = r.get_json()
    assert body["count"] == 2
    for item in body["receipts"]:
        assert "filePath" not in item
        assert item["available"] is True
        assert item["size"] > 0
    assert [item["amount"] for item in body["receipts"]] == ["400.00", "99.50"]
    assert body["receipts"][1]["description"] == "Books"


def test_receipt_stats_endpoint(client, auth_headers, payment):
    _pay(client, auth_headers, payment)
    _pay(client, auth_headers, dict(payment, amount=100, studentId=2))
    stats = client.get('/api/payments/stats', headers=auth_headers).get_json()["stats"]
    assert stats["totalReceipts"] == 2
    assert stats["totalAmount"] == "500.00"
    assert stats["uniqueStudents"] == 2


def test_send_receipt_simulated(client, auth_headers, payment):
    receipt_id = _pay(client, auth_headers, payment)["receiptId"]
    r = client.post(
        '/api/payments/send-receipt',
        json={"receiptId": receipt_id, "studentEmail": "jane@x.com", "studentName": "Jane"},
        headers=auth_headers,
    )
    assert r.status_code == 200
    body = r.get_json()
    assert body["success"] is True
    assert body["delivered"] is True
    assert body["simulated"] is True
    assert body["message"] == "Receipt sent successfully to jane@x.com"


def test_send_receipt_for_missing_receipt(client, auth_headers):
    r = client.post(
        '/api/payments/send-receipt',
        json={"receiptId": "REC0_nothere", "studentEmail": "jane@x.com", "studentName": "Jane"},
        headers=auth_headers,
    )
    assert r.status_code == 404
    assert r.get_json()["code"] == "ReceiptNotFound"


def test_send_receipt_requires_fields(client, auth_headers):
    r = client.post('/api/payments/send-receipt', json={"receiptId": "REC1_x"}, headers=auth_headers)
    assert r.status_code == 400
    assert r.get_json()["code"] == "MissingFields"


def test_receipts_dir_created_on_demand(app, client, auth_headers, payment):
    receipts_dir = Path(app.config["RECEIPTS_DIR"])
    assert not receipts_dir.exists()
    _pay(client, auth_headers, payment)
    assert (receipts_dir / "receipts.json").is_file()


def test_concurrent_receipts_are_all_recorded(app, payment):
    service = app.extensions["receipt_service"]
    n = 10
    errors = []

    def worker(i):
        try:
            service.generate(dict(payment, amount=i + 1), issuer={"email": ADMIN_EMAIL})
        except Exception as exc:  # surfaced below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    records = service.ledger.list_all()
    assert len(records) == n
    assert len({r.receipt_id for r in records}) == n
    assert sorted(r.amount for r in records) == sorted(f"{i + 1}.00" for i in range(n))
    for r in records:
        assert (service.receipts_dir / r.file_name).is_file()
    assert len(list(service.receipts_dir.glob("receipt_*.pdf"))) == n
