from __future__ import annotations

from fastapi import APIRouter, Depends

from bazaar_track.chat import ChatModel
from bazaar_track.dependencies import get_chat_model
from bazaar_track.schemas import ChatRequest, ChatResponse

router = APIRouter()


@router.post("/api/chat", response_model=ChatResponse)
def chat(payload: ChatRequest, model: ChatModel = Depends(get_chat_model)):
    return ChatResponse(reply=model.reply(payload.message))
