import base64
from email.mime.text import MIMEText
from carexpert.config import settings
from carexpert.logger import get_logger

log = get_logger("mailer")

SCOPES = ['https://www.googleapis.com/auth/gmail.send']

def _gmail_service():
	from googleapiclient.discovery import build
	from google.oauth2.credentials import Credentials
	creds = Credentials.from_authorized_user_file(settings.google_token_file or 'token.json', SCOPES)
	return build('gmail', 'v1', credentials=creds)


def send_email(to_email: str, subject: str, body: str) -> bool:
	"""Send a plain-text mail through Gmail. Returns False when delivery is not possible."""
	try:
		service = _gmail_service()
	except (OSError, ValueError) as e:
		log.warning("Gmail unavailable, skipping mail to %s: %s", to_email, e)
		return False
	msg = MIMEText(body)
	msg['to'] = to_email
	msg['subject'] = subject
	raw = base64.urlsafe_b64encode(msg.as_bytes()).decode()
	try:
		service.users().messages().send(userId='me', body={'raw': raw}).execute()
		return True
	except Exception as e:
		log.warning("Gmail send to %s failed: %s", to_email, e)
		return False
