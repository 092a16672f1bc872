"""
领域事件审计路由（仅管理员）
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from hmis.models.ontology import User
from hmis.models.schemas import EventResponse
from hmis.security.auth import require_admin
from hmis_core.engine.event_bus import event_bus

router = APIRouter(prefix="/events", tags=["事件审计"])


@router.get("", response_model=List[EventResponse])
def list_events(
    event_type: Optional[str] = None,
    source: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(require_admin)
):
    """最近的病房与账单事件，最新的在前（event_type 支持 room.* 这样的通配）"""
    return [e.to_dict() for e in event_bus.get_history(event_type, source, limit)]
