"""
Domain Event Base Class
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict
import json

from pydantic.alias_generators import to_camel


def _json_value(value: Any) -> Any:
    # 가격(Numeric(14, 2))은 응답 스키마와 같이 JSON 숫자로 전달
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass
class DomainEvent:
    """Domain Event 기본 클래스"""
    timestamp: datetime

    # SSE event 이름
    event_name = "chat"

    def to_dict(self) -> Dict[str, Any]:
        """Event를 camelCase dict로 변환"""
        data = {to_camel(key): _json_value(value) for key, value in asdict(self).items()}
        # Event 타입 추가 (클라이언트 라우팅용)
        data['eventType'] = self.__class__.__name__
        return data

    def to_json(self) -> str:
        """Event를 JSON으로 변환"""
        return json.dumps(self.to_dict(), ensure_ascii=False)
