import json
import pytest
from carexpert.errors import AnalysisError, ValidationError
from carexpert.services import llm, symptoms
from conftest import auth


class FakeReply:
	def __init__(self, content):
		self.content = content


class FakeLLM:
	def __init__(self, *replies):
		self.replies = list(replies)
		self.prompts = []

	def invoke(self, prompt):
		self.prompts.append(prompt)
		return FakeReply(self.replies.pop(0))


TRIAGE = {
	"probable_causes": ["Common cold", "Seasonal allergy"],
	"severity": "mild",
	"recommendation": "Rest and drink fluids.",
	"disclaimer": "This is not a substitute for professional medical advice.",
}


@pytest.fixture
def fake_llm(monkeypatch):
	def _install(*replies):
		fake = FakeLLM(*replies)
		monkeypatch.setattr(llm, "get_llm", lambda: fake)
		return fake
	return _install


def test_extract_json_tolerates_fences_and_trailing_commas():
	assert llm.extract_json('```json\n{"a": 1,}\n```') == {"a": 1}
	assert llm.extract_json('Sure! {"a": [1, 2,],} hope that helps') == {"a": [1, 2]}
	assert llm.extract_json("no json here") == {}
	assert llm.extract_json("[1, 2]") == {}


def test_build_prompt_language():
	assert "IMPORTANT: Respond in hi" in symptoms.build_prompt("headache", "hi")
	p = symptoms.build_prompt("headache")
	assert 'User symptoms: "headache"' in p
	assert "IMPORTANT" not in p
	assert '"probable_causes"' in p


def test_unknown_severity_falls_back_to_moderate():
	out = symptoms.parse_triage(json.dumps(dict(TRIAGE, severity="critical")))
	assert out["severity"] == "moderate"


def test_missing_fields_is_an_error():
	bad = dict(TRIAGE)
	del bad["recommendation"]
	with pytest.raises(AnalysisError):
		symptoms.parse_triage(json.dumps(bad))
	with pytest.raises(AnalysisError):
		symptoms.parse_triage("I cannot help with that")


def test_empty_symptoms_rejected(db, make_patient):
	pat = make_patient()
	with pytest.raises(ValidationError):
		symptoms.process_symptoms(db, pat.user, "   ")


def test_analyze_and_history(client, fake_llm, make_patient):
	pat = make_patient()
	fake = fake_llm("```json\n" + json.dumps(TRIAGE) + "\n```", json.dumps(dict(TRIAGE, severity="severe")))
	r = client.post("/api/ai-chat/analyze", json={"symptoms": "runny nose and sneezing"}, headers=auth(pat.user_id))
	assert r.status_code == 200, r.text
	body = r.json()
	assert body["severity"] == "mild"
	assert body["probable_causes"] == ["Common cold", "Seasonal allergy"]
	assert "runny nose and sneezing" in fake.prompts[0]
	client.post("/api/ai-chat/analyze", json={"symptoms": "chest pain"}, headers=auth(pat.user_id))

	r = client.get("/api/ai-chat/history", params={"limit": 1}, headers=auth(pat.user_id))
	page = r.json()
	assert page["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
	assert page["chats"][0]["user_message"] == "runny nose and sneezing"

	chat_id = body["chat_id"]
	assert client.get(f"/api/ai-chat/{chat_id}", headers=auth(pat.user_id)).json()["severity"] == "mild"
	assert client.delete("/api/ai-chat/history", headers=auth(pat.user_id)).json() == {"deleted": 2}
	assert client.get(f"/api/ai-chat/{chat_id}", headers=auth(pat.user_id)).status_code == 404


def test_bad_model_reply_is_502(client, fake_llm, make_patient):
	pat = make_patient()
	fake_llm("sorry")
	r = client.post("/api/ai-chat/analyze", json={"symptoms": "cough"}, headers=auth(pat.user_id))
	assert r.status_code == 502
	assert r.json()["success"] is False


def test_empty_cause_list_is_accepted():
	out = symptoms.parse_triage(json.dumps(dict(TRIAGE, probable_causes=[])))
	assert out["probable_causes"] == []
	with pytest.raises(AnalysisError):
		symptoms.parse_triage(json.dumps(dict(TRIAGE, recommendation="")))
	with pytest.raises(AnalysisError):
		symptoms.parse_triage(json.dumps(dict(TRIAGE, severity=None)))
