"""请求体模型"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ResponseStartRequest(BaseModel):
    response_id: Optional[str] = Field(default=None, alias="responseId")
    user_prompt: str = Field(default="", alias="userPrompt")
    model: str = "unknown"
    supersede: bool = True

    model_config = {"populate_by_name": True}


class ChunkRequest(BaseModel):
    chunk: str


class CompleteRequest(BaseModel):
    final_text: str = Field(default="", alias="finalText")

    model_config = {"populate_by_name": True}


class ErrorRequest(BaseModel):
    error: str = "stream error"


class ChatMessage(BaseModel):
    role: str
    content: str


class GenerateRequest(BaseModel):
    prompt: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    model: Optional[str] = None
    response_id: Optional[str] = Field(default=None, alias="responseId")
    timeout: Optional[float] = None

    model_config = {"populate_by_name": True}

    def chat_messages(self) -> List[dict]:
        messages = [m.model_dump() for m in self.messages]
        if self.prompt:
            messages.append({"role": "user", "content": self.prompt})
        return messages


class ReplayRequest(BaseModel):
    response_id: Optional[str] = Field(default=None, alias="responseId")

    model_config = {"populate_by_name": True}
