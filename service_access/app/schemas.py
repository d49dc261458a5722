"""
Request and response bodies for the access service routes.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class UpdateProfileRequest(CamelModel):
    first_name: Optional[str] = Field(default=None, alias="firstName", max_length=50)
    last_name: Optional[str] = Field(default=None, alias="lastName", max_length=50)


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = Field(default=None, alias="currentPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class DeleteAccountRequest(CamelModel):
    password: Optional[str] = None
    confirmation: Optional[str] = None


class ChatMessage(CamelModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(min_length=1, max_length=10000)


class ChatCompletionRequest(CamelModel):
    messages: List[ChatMessage] = Field(min_length=1)
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens", gt=0, le=8192)


class MoodAnalysisRequest(CamelModel):
    text: str = Field(min_length=1, max_length=2000)
