from typing import List
from fastapi import APIRouter, Depends, Query

from turtlechat.api.dependencies import get_chat_service, get_current_user_id
from turtlechat.core.config import settings
from turtlechat.schemas.chat import RoomCreate, RoomFromListingCreate, RoomIdResponse, RoomSummary
from turtlechat.services.chat_service import ChatService

router = APIRouter(prefix="/chat/rooms", tags=["Chat Rooms"])


@router.post("", response_model=RoomIdResponse)
async def create_chat_room(
    room_data: RoomCreate,
    current_user_id: int = Depends(get_current_user_id),
    chat_service: ChatService = Depends(get_chat_service)
) -> RoomIdResponse:
    """
    1:1 채팅방 생성

    - **otherUserId**: 상대방 사용자 ID

    두 사용자 간에 기존 채팅방이 있으면 기존 채팅방 ID를 반환합니다.
    """
    room_id = await chat_service.open_or_create_from_users(current_user_id, room_data.other_user_id)
    return RoomIdResponse(room_id=room_id)


@router.post("/from-listing", response_model=RoomIdResponse)
async def create_chat_room_from_listing(
    room_data: RoomFromListingCreate,
    current_user_id: int = Depends(get_current_user_id),
    chat_service: ChatService = Depends(get_chat_service)
) -> RoomIdResponse:
    """
    거래글에서 판매자와의 채팅방 열기

    - **listingId**: 거래 ID

    채팅방에 거래글 카드(제목, 가격, 대표 사진)를 추가합니다.
    """
    room_id = await chat_service.open_from_listing(current_user_id, room_data.listing_id)
    return RoomIdResponse(room_id=room_id)


@router.get("", response_model=List[RoomSummary])
async def get_chat_rooms(
    page: int = Query(0, ge=0, description="페이지 번호 (0부터)"),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="페이지 크기"),
    current_user_id: int = Depends(get_current_user_id),
    chat_service: ChatService = Depends(get_chat_service)
) -> List[RoomSummary]:
    """
    사용자의 채팅방 목록 조회 (최근 메시지 순)
    """
    return await chat_service.rooms(current_user_id, page, size)


@router.get("/{room_id}", response_model=RoomSummary)
async def get_chat_room(
    room_id: str,
    current_user_id: int = Depends(get_current_user_id),
    chat_service: ChatService = Depends(get_chat_service)
) -> RoomSummary:
    """
    채팅방 요약 정보 조회
    """
    return await chat_service.room_summary(room_id, current_user_id)
