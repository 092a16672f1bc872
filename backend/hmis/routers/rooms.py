"""
病房管理路由
占用转换（assign / release / transfer）由 hmis_core 的 RoomOccupancy 执行
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hmis.database import get_db
from hmis.models.ontology import User
from hmis.models.schemas import (
    RoomCreate, RoomUpdate, RoomAssign, RoomTransfer, RoomResponse, RoomSummary
)
from hmis.routers.errors import to_http_exception
from hmis.security.auth import get_current_user, require_admin
from hmis.services.room_service import RoomService
from hmis_core.errors import HMISError

router = APIRouter(prefix="/rooms", tags=["病房管理"])


@router.get("", response_model=List[RoomResponse])
def list_rooms(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取病房列表"""
    service = RoomService(db)
    return service.with_patients(service.get_rooms())


@router.get("/available", response_model=List[RoomResponse])
def list_available_rooms(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取空闲病房"""
    service = RoomService(db)
    return service.with_patients(service.get_available_rooms())


@router.get("/summary", response_model=RoomSummary)
def get_room_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取房态统计"""
    return RoomService(db).get_summary()


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取病房详情"""
    try:
        return RoomService(db).get_room_with_patient(room_id)
    except HMISError as e:
        raise to_http_exception(e)


@router.post("", response_model=RoomResponse)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """登记病房"""
    service = RoomService(db)
    try:
        room = service.create_room(data)
        return service.with_patient(room)
    except HMISError as e:
        raise to_http_exception(e)


@router.put("/{room_id}", response_model=RoomResponse)
def update_room(
    room_id: int,
    data: RoomUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """修改病房类型或日费用"""
    service = RoomService(db)
    try:
        room = service.update_room(room_id, data)
        return service.with_patient(room)
    except HMISError as e:
        raise to_http_exception(e)


@router.put("/{room_id}/assign", response_model=RoomResponse)
def assign_room(
    room_id: int,
    data: RoomAssign,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """分配病房给患者"""
    service = RoomService(db)
    try:
        room = service.assign_room(room_id, data.patient_id)
        return service.with_patient(room)
    except HMISError as e:
        raise to_http_exception(e)


@router.put("/{room_id}/release", response_model=RoomResponse)
def release_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """释放病房"""
    service = RoomService(db)
    try:
        room = service.release_room(room_id)
        return service.with_patient(room)
    except HMISError as e:
        raise to_http_exception(e)


@router.put("/{room_id}/transfer", response_model=RoomResponse)
def transfer_room(
    room_id: int,
    data: RoomTransfer,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """将病房从当前患者移交给另一位患者"""
    service = RoomService(db)
    try:
        room = service.transfer_room(room_id, data.from_patient_id, data.to_patient_id)
        return service.with_patient(room)
    except HMISError as e:
        raise to_http_exception(e)


@router.delete("/{room_id}")
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """删除病房（占用中不可删除）"""
    try:
        RoomService(db).delete_room(room_id)
        return {"message": "Room deleted"}
    except HMISError as e:
        raise to_http_exception(e)
