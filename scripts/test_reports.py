import json
import fitz
import pytest
from carexpert import models
from carexpert.config import settings
from carexpert.errors import AnalysisError
from carexpert.services import llm, reports, text_extraction, accounts
from carexpert.workers.celery_app import analyze_report_task
from conftest import auth, PASSWORD

ANALYSIS = {
	"summary": "Mild anaemia.",
	"abnormal_values": [{"term": "Hemoglobin", "value": "10.2 g/dL", "normal_range": "12-16 g/dL", "issue": "Low"}],
	"possible_conditions": ["Iron deficiency anaemia"],
	"recommendation": "Repeat CBC and consult a physician.",
	"disclaimer": "Not a substitute for professional medical advice.",
}


class CountingLLM:
	def __init__(self, reply):
		self.reply = reply
		self.calls = 0

	def invoke(self, prompt):
		self.calls += 1
		return type("Reply", (), {"content": self.reply})()


@pytest.fixture
def model(monkeypatch):
	fake = CountingLLM(json.dumps(ANALYSIS))
	monkeypatch.setattr(llm, "get_llm", lambda: fake)
	return fake


@pytest.fixture
def extracted(monkeypatch):
	state = {"text": "Hemoglobin 10.2 g/dL (12-16)"}

	def _extract(path):
		if isinstance(state["text"], Exception):
			raise state["text"]
		return state["text"]
	monkeypatch.setattr(text_extraction, "extract_text", _extract)
	return state


def upload(client, user_id, name="cbc.pdf", content=b"%PDF-1.4 fake"):
	return client.post("/api/report", files={"file": (name, content, "application/pdf")}, headers=auth(user_id))


def test_upload_is_processed_in_background(client, model, extracted, make_patient):
	pat = make_patient()
	r = upload(client, pat.user_id)
	assert r.status_code == 202, r.text
	assert r.json()["status"] == "PROCESSING"
	report_id = r.json()["report_id"]

	r = client.get(f"/api/report/{report_id}", headers=auth(pat.user_id))
	body = r.json()
	assert body["status"] == "COMPLETED"
	assert body["attempts"] == 1
	assert body["summary"] == "Mild anaemia."
	assert body["possible_conditions"] == ["Iron deficiency anaemia"]
	assert body["extracted_text"].startswith("Hemoglobin")
	assert [x["report_id"] for x in client.get("/api/report", headers=auth(pat.user_id)).json()] == [report_id]


def test_upload_validation(client, monkeypatch, make_patient):
	pat = make_patient()
	r = client.post("/api/report", files={"file": ("notes.txt", b"hello", "text/plain")}, headers=auth(pat.user_id))
	assert r.status_code == 400
	monkeypatch.setattr(settings, "max_report_size_bytes", 8)
	r = upload(client, pat.user_id, content=b"0123456789")
	assert r.status_code == 400
	assert "maximum allowed size" in r.json()["message"]


def test_failed_report_can_be_retried_by_owner(client, db, model, extracted, make_patient):
	pat = make_patient()
	other = make_patient("Sara", "Ali")
	extracted["text"] = text_extraction.ExtractionError("OCR failed: timeout")
	report_id = upload(client, pat.user_id, name="scan.png").json()["report_id"]
	body = client.get(f"/api/report/{report_id}", headers=auth(pat.user_id)).json()
	assert (body["status"], body["error"], body["attempts"]) == ("FAILED", "OCR failed: timeout", 1)

	assert client.post(f"/api/report/{report_id}/retry", headers=auth(other.user_id)).status_code == 403
	extracted["text"] = "Glucose 180 mg/dL"
	r = client.post(f"/api/report/{report_id}/retry", headers=auth(pat.user_id))
	assert r.status_code == 202
	body = client.get(f"/api/report/{report_id}", headers=auth(pat.user_id)).json()
	assert (body["status"], body["error"], body["attempts"]) == ("COMPLETED", None, 2)
	# only FAILED reports go back on the queue
	assert client.post(f"/api/report/{report_id}/retry", headers=auth(pat.user_id)).status_code == 400


def test_report_visibility(client, db, model, extracted, make_patient):
	pat = make_patient()
	other = make_patient("Sara", "Ali")
	admin = accounts.admin_signup(db, "Root", "Admin", "root@example.com", PASSWORD)
	report_id = upload(client, pat.user_id).json()["report_id"]
	assert client.get(f"/api/report/{report_id}", headers=auth(other.user_id)).status_code == 403
	assert client.get(f"/api/report/{report_id}", headers=auth(admin.user_id)).status_code == 200
	assert client.get("/api/report/999", headers=auth(pat.user_id)).status_code == 404


def test_invalid_analysis_marks_failed(db, monkeypatch, extracted, make_patient):
	pat = make_patient()
	monkeypatch.setattr(llm, "get_llm", lambda: CountingLLM('{"summary": "ok"}'))
	report = reports.create_report(db, pat, "cbc.pdf", b"%PDF-1.4")
	out = reports.process_report(db, report.report_id)
	assert out.status == models.ReportStatus.FAILED
	assert "Invalid analysis structure" in out.error
	# not processing any more, a second delivery is a no-op
	assert reports.process_report(db, report.report_id).attempts == 1


def test_analysis_cache(model):
	first = reports.analyze_report_text("TSH 6.1 mIU/L")
	second = reports.analyze_report_text("TSH 6.1 mIU/L")
	assert first == second
	assert model.calls == 1
	reports.analyze_report_text("TSH 6.1 mIU/L", use_cache=False)
	assert model.calls == 2
	with pytest.raises(AnalysisError):
		reports.analyze_report_text("   ")


def test_pdf_text_layer_is_read(tmp_path):
	path = tmp_path / "cbc.pdf"
	doc = fitz.open()
	doc.new_page().insert_text((72, 72), "Hemoglobin 10.2 g/dL reference 12-16")
	doc.save(str(path))
	doc.close()
	assert "Hemoglobin 10.2" in text_extraction.extract_text(str(path))


def test_scanned_pdf_falls_back_to_ocr(tmp_path, monkeypatch):
	path = tmp_path / "scan.pdf"
	doc = fitz.open()
	doc.new_page()
	doc.save(str(path))
	doc.close()
	calls = []

	class Resp:
		def raise_for_status(self):
			pass

		def json(self):
			return {"IsErroredOnProcessing": False, "ParsedResults": [{"ParsedText": "Platelets 90000"}]}

	def fake_post(url, files=None, data=None, timeout=None):
		calls.append(files["file"][0])
		return Resp()
	monkeypatch.setattr(text_extraction.requests, "post", fake_post)
	assert text_extraction.extract_text(str(path)) == "Platelets 90000"
	assert calls == ["page-1.png"]


def test_ocr_error_is_raised(tmp_path, monkeypatch):
	path = tmp_path / "x.jpg"
	path.write_bytes(b"\xff\xd8\xff")

	class Resp:
		def raise_for_status(self):
			pass

		def json(self):
			return {"IsErroredOnProcessing": True, "ErrorMessage": ["Unable to recognize the file type"]}
	monkeypatch.setattr(text_extraction.requests, "post", lambda *a, **k: Resp())
	with pytest.raises(text_extraction.ExtractionError, match="Unable to recognize"):
		text_extraction.extract_text(str(path))


def test_failed_enqueue_leaves_report_retryable(client, monkeypatch, model, extracted, make_patient):
	pat = make_patient()
	broker = {"up": False}
	deliver = analyze_report_task.delay

	def _delay(report_id):
		if not broker["up"]:
			raise ConnectionError("broker unreachable")
		return deliver(report_id)
	monkeypatch.setattr(analyze_report_task, "delay", _delay)

	r = upload(client, pat.user_id)
	assert r.status_code == 503
	assert r.json()["success"] is False
	[report] = client.get("/api/report", headers=auth(pat.user_id)).json()
	assert report["status"] == "FAILED"
	assert "broker unreachable" in report["error"]

	# still down, the retry fails the same way and the report stays retryable
	assert client.post(f"/api/report/{report['report_id']}/retry", headers=auth(pat.user_id)).status_code == 503
	broker["up"] = True
	r = client.post(f"/api/report/{report['report_id']}/retry", headers=auth(pat.user_id))
	assert r.status_code == 202
	body = client.get(f"/api/report/{report['report_id']}", headers=auth(pat.user_id)).json()
	assert (body["status"], body["error"], body["attempts"]) == ("COMPLETED", None, 1)


def test_oversized_upload_is_rejected_without_a_record(client, monkeypatch, make_patient):
	pat = make_patient()
	monkeypatch.setattr(settings, "max_report_size_bytes", 16)
	r = upload(client, pat.user_id, content=b"x" * 4096)
	assert r.status_code == 400
	assert "maximum allowed size" in r.json()["message"]
	assert client.get("/api/report", headers=auth(pat.user_id)).json() == []
