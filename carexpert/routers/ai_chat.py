from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from carexpert.db import get_db
from carexpert import models
from carexpert.deps import get_current_user
from carexpert.schemas import SymptomsIn, AiChatOut, AiChatPage
from carexpert.services import symptoms

router = APIRouter(prefix="/api/ai-chat", tags=["ai-chat"])

@router.post("/analyze", response_model=AiChatOut)

def analyze_symptoms(payload: SymptomsIn, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return symptoms.process_symptoms(db, user, payload.symptoms, payload.language)

@router.get("/history", response_model=AiChatPage)
def history(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	chats, pagination = symptoms.chat_history(db, user.user_id, page, limit)
	return {"chats": chats, "pagination": pagination}

@router.delete("/history")
def clear_history(user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return {"deleted": symptoms.clear_history(db, user.user_id)}

@router.get("/{chat_id}", response_model=AiChatOut)
def get_chat(chat_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
	return symptoms.get_chat(db, user.user_id, chat_id)
