import json, re
from langchain_groq import ChatGroq
from carexpert.config import settings

_llm = None

def get_llm():
	global _llm
	if _llm is None:
		kwargs = {"model": settings.groq_model, "temperature": 0.2}
		if settings.groq_api_key:
			kwargs["api_key"] = settings.groq_api_key
		_llm = ChatGroq(**kwargs)
	return _llm

def extract_json(text: str) -> dict:
	"""Pull a JSON object out of a model reply, tolerating code fences and trailing commas."""
	try:
		data = json.loads(text)
		return data if isinstance(data, dict) else {}
	except Exception:
		m = re.search(r"```(?:json)?\s*({[\s\S]*?})\s*```", text, re.IGNORECASE)
		if m:
			cand = m.group(1)
		else:
			s = text.find('{'); e = text.rfind('}')
			cand = text[s:e+1] if s!=-1 and e!=-1 else '{}'
		cand = re.sub(r",\s*([}\]])", r"\1", cand)
		try:
			data = json.loads(cand)
		except Exception:
			return {}
		return data if isinstance(data, dict) else {}
