from sqlalchemy.orm import Session
from langchain_core.prompts import PromptTemplate
from carexpert import models
from carexpert.errors import ValidationError, NotFound, AnalysisError
from carexpert.services import llm
from carexpert.services.chat import paginate
from carexpert.logger import get_logger

log = get_logger("symptoms")

SEVERITIES = ("mild", "moderate", "severe")
REQUIRED_FIELDS = ("probable_causes", "severity", "recommendation", "disclaimer")

TRIAGE_PROMPT = PromptTemplate.from_template(
	"""You are an empathetic and accurate medical assistant AI. When given the user's symptoms in text, you should:

1. Interpret the symptoms, even if the description is brief or incomplete.
2. Identify probable causes related to the symptoms.
3. Determine the severity level, categorizing it as "mild", "moderate", or "severe".
4. Provide practical recommendations on what the user should do next, such as monitoring symptoms or consulting a doctor.
5. Include a disclaimer stating that the information is not a replacement for professional medical advice.

User symptoms: "{symptoms}"{language_instruction}

Respond with ONLY a valid JSON object in this exact format:
{{
  "probable_causes": ["Condition1", "Condition2"],
  "severity": "mild/moderate/severe",
  "recommendation": "Advice on what to do next",
  "disclaimer": "This is not a substitute for professional medical advice. Please consult a doctor for an accurate diagnosis."
}}"""
)


def build_prompt(symptoms: str, language: str = "en") -> str:
	language_instruction = ""
	if language and language != "en":
		language_instruction = (
			f"\n\nIMPORTANT: Respond in {language} language. All text in the JSON response "
			f"(probable_causes, recommendation, disclaimer) should be in {language}. "
			"Keep the severity field as one of mild, moderate or severe."
		)
	return TRIAGE_PROMPT.format(symptoms=symptoms, language_instruction=language_instruction)


def parse_triage(reply: str) -> dict:
	data = llm.extract_json(reply)
	if not data or any(data.get(k) is None or data.get(k) == "" for k in REQUIRED_FIELDS):
		log.error("invalid triage reply: %s", reply[:500])
		raise AnalysisError("Invalid AI response format. Please try again.")
	causes = data["probable_causes"]
	if isinstance(causes, str):
		causes = [causes]
	severity = str(data["severity"]).strip().lower()
	if severity not in SEVERITIES:
		severity = "moderate"
	return {
		"probable_causes": [str(c) for c in causes],
		"severity": severity,
		"recommendation": str(data["recommendation"]),
		"disclaimer": str(data["disclaimer"]),
	}


def process_symptoms(db: Session, user: models.User, symptoms: str | None, language: str = "en") -> models.AiChat:
	symptoms = (symptoms or "").strip()
	if not symptoms:
		raise ValidationError("Symptoms description is required")
	reply = llm.get_llm().invoke(build_prompt(symptoms, language)).content
	analysis = parse_triage(reply)
	chat = models.AiChat(
		user_id=user.user_id,
		user_message=symptoms,
		ai_response=analysis,
		probable_causes=analysis["probable_causes"],
		severity=analysis["severity"],
		recommendation=analysis["recommendation"],
		disclaimer=analysis["disclaimer"],
	)
	db.add(chat)
	db.commit()
	db.refresh(chat)
	log.info("triage user=%s chat=%s severity=%s", user.user_id, chat.chat_id, chat.severity)
	return chat


def chat_history(db: Session, user_id: int, page: int = 1, limit: int = 10):
	q = db.query(models.AiChat).filter(models.AiChat.user_id == user_id)
	return paginate(q, page, limit, (models.AiChat.created_at.asc(), models.AiChat.chat_id.asc()))


def get_chat(db: Session, user_id: int, chat_id: int) -> models.AiChat:
	chat = db.query(models.AiChat).filter(models.AiChat.chat_id == chat_id, models.AiChat.user_id == user_id).first()
	if not chat:
		raise NotFound("Chat not found")
	return chat


def clear_history(db: Session, user_id: int) -> int:
	count = db.query(models.AiChat).filter(models.AiChat.user_id == user_id).delete(synchronize_session=False)
	db.commit()
	return count
