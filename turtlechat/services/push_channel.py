"""
SSE Push Channel - 사용자별 실시간 알림 구독 관리

사용자 ID마다 여러 구독(기기)을 가질 수 있습니다. 각 구독은 제한된 크기의 큐를
가지며, 큐가 가득 차면 쓰기 실패로 보고 해당 구독을 닫습니다.
오프라인 사용자를 위한 버퍼링은 하지 않습니다.
"""

import asyncio
import json
import logging
import uuid
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from turtlechat.core.config import settings
from turtlechat.core.errors import SubscriptionBroken
from turtlechat.core.logging import log_push_event
from turtlechat.domain.events import DomainEvent

logger = logging.getLogger(__name__)

# 구독 종료 표시
_CLOSED = object()


class SubscriptionState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class Subscription:
    """하나의 SSE 연결"""

    def __init__(self, user_id: int, queue_size: int):
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        self.state = SubscriptionState.OPEN
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)

    @property
    def is_open(self) -> bool:
        return self.state == SubscriptionState.OPEN

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, event: DomainEvent) -> None:
        """대기 없이 큐에 넣음. 닫혔거나 큐가 가득 차면 SubscriptionBroken"""
        if not self.is_open:
            raise SubscriptionBroken(f"subscription {self.id} is closed")
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            raise SubscriptionBroken(f"subscription {self.id} buffer is full")

    def mark_closed(self) -> bool:
        """CLOSED로 전이. 이미 닫혀 있었으면 False"""
        if not self.is_open:
            return False
        self.state = SubscriptionState.CLOSED

        # 대기 중인 stream을 깨우기 위해 종료 표시를 넣음 (가득 차면 가장 오래된 항목 제거)
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)
        return True

    async def next_event(self) -> Optional[DomainEvent]:
        """다음 이벤트. 구독이 닫히면 None"""
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item


class PushChannel:
    """userId -> {subscription_id: Subscription} 레지스트리"""

    def __init__(self, queue_size: Optional[int] = None):
        self.queue_size = queue_size or settings.sse_queue_size
        self._subscriptions: Dict[int, Dict[str, Subscription]] = {}

    def subscribe(self, user_id: int) -> Subscription:
        subscription = Subscription(user_id, self.queue_size)
        self._subscriptions.setdefault(user_id, {})[subscription.id] = subscription
        log_push_event(logger, "subscribed", user_id, subscription.id,
                       active=self.subscriber_count(user_id))
        return subscription

    def notify(self, user_id: int, event: DomainEvent) -> int:
        """user_id의 모든 구독에 전달하고 전달된 구독 수를 반환"""
        # 전달 중 close가 일어나도 안전하도록 스냅샷을 순회
        targets: List[Subscription] = list(self._subscriptions.get(user_id, {}).values())

        delivered = 0
        for subscription in targets:
            try:
                subscription.offer(event)
                delivered += 1
            except SubscriptionBroken as e:
                logger.warning(f"Dropping SSE subscription {subscription.id} of user {user_id}: {e}")
                self.close(subscription)

        return delivered

    def close(self, subscription: Subscription) -> None:
        """구독 해제 (여러 번 호출해도 안전)"""
        subscription.mark_closed()

        user_subscriptions = self._subscriptions.get(subscription.user_id)
        if user_subscriptions is None or subscription.id not in user_subscriptions:
            return

        del user_subscriptions[subscription.id]
        if not user_subscriptions:
            del self._subscriptions[subscription.user_id]

        log_push_event(logger, "closed", subscription.user_id, subscription.id)

    def close_all(self) -> None:
        """서버 종료 시 모든 구독 해제"""
        for user_subscriptions in list(self._subscriptions.values()):
            for subscription in list(user_subscriptions.values()):
                self.close(subscription)

    def subscriber_count(self, user_id: int) -> int:
        return len(self._subscriptions.get(user_id, {}))

    async def stream(self, subscription: Subscription) -> AsyncIterator[Dict[str, Any]]:
        """EventSourceResponse용 이벤트 generator"""
        try:
            # 연결 성공 알림
            yield {
                "event": "connected",
                "data": json.dumps({
                    "userId": subscription.user_id,
                    "subscriptionId": subscription.id,
                })
            }

            while True:
                event = await subscription.next_event()
                if event is None:
                    break
                yield {
                    "event": event.event_name,
                    "data": event.to_json(),
                }

        except asyncio.CancelledError:
            logger.info(f"SSE stream cancelled for user {subscription.user_id}")
            raise

        finally:
            self.close(subscription)


push_channel = PushChannel()


def get_push_channel() -> PushChannel:
    """FastAPI dependency - 전역 PushChannel 반환"""
    return push_channel
