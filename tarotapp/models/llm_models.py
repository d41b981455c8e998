# tarotapp/models/llm_models.py
from typing import List, Optional

from pydantic import BaseModel


class ChatMessage(BaseModel):
    role: str
    content: str


class CompletionRequest(BaseModel):
    model: str
    messages: List[ChatMessage]
    max_tokens: int
    temperature: Optional[float] = None
