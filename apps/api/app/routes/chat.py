from __future__ import annotations

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..openai_client import generate_pediatric_reply
from ..schemas import ChatMessage, ChatRequest, ChatResponse
from ..supabase import AuthContext, get_auth_context

router = APIRouter(prefix="/api/v1", tags=["chat"])
logger = logging.getLogger(__name__)

CHAT_COLUMNS = "id,user_id,role,content,timestamp"


async def _list_messages(auth: AuthContext) -> List[ChatMessage]:
    rows = await auth.supabase.select(
        "chat_messages",
        params={
            "select": CHAT_COLUMNS,
            "user_id": f"eq.{auth.user_id}",
            "order": "timestamp.asc",
        },
    )
    return [ChatMessage.model_validate(row) for row in rows]


async def _insert_message(auth: AuthContext, *, role: str, content: str) -> ChatMessage:
    rows = await auth.supabase.insert(
        "chat_messages",
        {"user_id": auth.user_id, "role": role, "content": content},
    )
    if not rows:
        raise HTTPException(status_code=500, detail="Chat message could not be saved")
    return ChatMessage.model_validate(rows[0])


@router.get("/chat/messages", response_model=List[ChatMessage])
async def list_chat_messages_endpoint(
    auth: AuthContext = Depends(get_auth_context),
) -> List[ChatMessage]:
    return await _list_messages(auth)


@router.post("/chat/send", response_model=ChatResponse)
async def send_chat_message_endpoint(
    payload: ChatRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> ChatResponse:
    content = payload.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="content is required")
    history = [message.model_dump() for message in await _list_messages(auth)]
    user_message = await _insert_message(auth, role="user", content=content)
    logger.info("chat message received", extra={"user_id": auth.user_id, "history": len(history)})
    reply = await asyncio.to_thread(generate_pediatric_reply, content, history=history)
    ai_message = await _insert_message(auth, role="assistant", content=reply)
    return ChatResponse(user_message=user_message, ai_message=ai_message)
