from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    """채팅 화면에 필요한 사용자 프로필"""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="사용자 ID")
    nickname: Optional[str] = Field(None, description="닉네임")
    profile_image: Optional[str] = Field(None, description="프로필 이미지 URL")
