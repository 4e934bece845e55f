import os
import requests
import fitz  # PyMuPDF
from carexpert.config import settings
from carexpert.logger import get_logger

log = get_logger("text_extraction")

MIME_TYPES = {
	".pdf": "application/pdf",
	".jpg": "image/jpeg",
	".jpeg": "image/jpeg",
	".png": "image/png",
}
MIN_PDF_TEXT = 10
OCR_DPI = 150


class ExtractionError(Exception):
	pass


def mime_type_for(filename: str) -> str | None:
	return MIME_TYPES.get(os.path.splitext(filename or "")[1].lower())


def ocr_image(data: bytes, filename: str) -> str:
	"""Send one image to the OCR API and return the recognised text."""
	payload = {"language": "eng", "isOverlayRequired": "false", "OCREngine": "2"}
	if settings.ocr_api_key:
		payload["apikey"] = settings.ocr_api_key
	try:
		resp = requests.post(settings.ocr_api_url, files={"file": (filename, data)}, data=payload, timeout=60)
		resp.raise_for_status()
		body = resp.json()
	except (requests.RequestException, ValueError) as e:
		raise ExtractionError(f"OCR request failed: {e}") from e
	if body.get("IsErroredOnProcessing"):
		err = body.get("ErrorMessage") or "unknown OCR error"
		if isinstance(err, list):
			err = "; ".join(str(x) for x in err)
		raise ExtractionError(f"OCR failed: {err}")
	return "\n".join(r.get("ParsedText", "") for r in body.get("ParsedResults") or []).strip()


def _pdf_pages_as_text(doc) -> str:
	mat = fitz.Matrix(OCR_DPI / 72, OCR_DPI / 72)
	parts = []
	for pno in range(len(doc)):
		pix = doc.load_page(pno).get_pixmap(matrix=mat)
		parts.append(ocr_image(pix.tobytes("png"), f"page-{pno + 1}.png"))
	return "\n".join(parts).strip()


def extract_pdf(path: str) -> str:
	try:
		doc = fitz.open(path)
	except (RuntimeError, ValueError) as e:
		raise ExtractionError(f"Cannot open PDF: {e}") from e
	try:
		text = "\n".join(page.get_text() for page in doc).strip()
		if len(text) >= MIN_PDF_TEXT:
			return text
		# scanned document, no usable text layer
		log.info("pdf %s has no text layer, falling back to OCR", path)
		return _pdf_pages_as_text(doc)
	finally:
		doc.close()


def extract_text(path: str) -> str:
	mime = mime_type_for(path)
	if mime is None:
		raise ExtractionError(f"Unsupported file type: {os.path.splitext(path)[1]}")
	if mime == "application/pdf":
		return extract_pdf(path)
	with open(path, "rb") as f:
		return ocr_image(f.read(), os.path.basename(path))
