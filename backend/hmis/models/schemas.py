"""
Pydantic schemas - 请求/响应模型
金额以 Decimal 接收，校验与推导在 hmis_core 中完成
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from hmis.models.ontology import UserRole, Gender, PatientType


# ============== 用户 Schemas ==============

class UserResponse(BaseModel):
    id: int
    username: str
    name: str
    email: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# ============== 患者 Schemas ==============

class PatientBase(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    age: Optional[int] = Field(None, ge=0, le=150)
    gender: Optional[Gender] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = None
    patient_type: PatientType = PatientType.OUT_PATIENT
    medical_history: Optional[str] = None


class PatientCreate(PatientBase):
    pass


class PatientUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    age: Optional[int] = Field(None, ge=0, le=150)
    gender: Optional[Gender] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = None
    patient_type: Optional[PatientType] = None
    medical_history: Optional[str] = None


class PatientResponse(PatientBase):
    id: int
    patient_code: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ============== 病房 Schemas ==============

class RoomCreate(BaseModel):
    room_number: str = Field(..., max_length=10)
    room_type: str
    charges_per_day: Decimal


class RoomUpdate(BaseModel):
    room_type: Optional[str] = None
    charges_per_day: Optional[Decimal] = None


class RoomAssign(BaseModel):
    patient_id: int


class RoomTransfer(BaseModel):
    from_patient_id: int
    to_patient_id: int


class RoomResponse(BaseModel):
    id: int
    room_number: str
    room_type: str
    charges_per_day: Decimal
    occupancy_state: str
    current_patient_ref: Optional[str] = None
    current_patient_name: Optional[str] = None
    occupied_since: Optional[datetime] = None


class RoomSummary(BaseModel):
    total: int
    available: int
    occupied: int


# ============== 账单 Schemas ==============

class LineItemIn(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: Decimal
    rate: Decimal


class LineItemResponse(BaseModel):
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal


class BillCreate(BaseModel):
    patient_id: int
    line_items: List[LineItemIn]
    discount_percent: Decimal = Decimal("0")
    tax_rate_percent: Decimal = Decimal("0")
    payment_status: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=30)
    bill_type: Optional[str] = Field(None, max_length=30)


class BillUpdate(BaseModel):
    """修订请求：只传需要修改的字段，金额字段与支付字段不能混用"""
    line_items: Optional[List[LineItemIn]] = None
    discount_percent: Optional[Decimal] = None
    tax_rate_percent: Optional[Decimal] = None
    payment_status: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=30)
    bill_type: Optional[str] = Field(None, max_length=30)


class BillResponse(BaseModel):
    id: int
    patient_ref: str
    patient_name: Optional[str] = None
    bill_type: Optional[str] = None
    line_items: List[LineItemResponse]
    discount_percent: Decimal
    tax_rate_percent: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    payment_status: str
    payment_method: Optional[str] = None
    created_by: Optional[int] = None
    version: int
    created_at: datetime
    updated_at: datetime


# ============== 用户管理 Schemas ==============

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=100)
    role: UserRole = UserRole.OPERATOR


# ============== 医生 Schemas ==============

class DoctorBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    specialization: str = Field(..., min_length=1, max_length=100)
    qualification: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=100)
    visiting_hours: Optional[str] = Field(None, max_length=100)


class DoctorCreate(DoctorBase):
    pass


class DoctorUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    specialization: Optional[str] = Field(None, min_length=1, max_length=100)
    qualification: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=100)
    visiting_hours: Optional[str] = Field(None, max_length=100)


class DoctorResponse(DoctorBase):
    id: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ============== 病理报告 Schemas ==============

class PathologyReportCreate(BaseModel):
    patient_id: int
    doctor_id: Optional[int] = None
    test_type: str = Field(..., min_length=1, max_length=100)
    test_date: Optional[datetime] = None
    sample_collection_date: Optional[datetime] = None
    results: Optional[str] = None
    normal_ranges: Optional[str] = None
    remarks: Optional[str] = None
    is_critical: bool = False


class PathologyReportUpdate(BaseModel):
    doctor_id: Optional[int] = None
    test_type: Optional[str] = Field(None, min_length=1, max_length=100)
    test_date: Optional[datetime] = None
    sample_collection_date: Optional[datetime] = None
    results: Optional[str] = None
    normal_ranges: Optional[str] = None
    remarks: Optional[str] = None
    is_critical: Optional[bool] = None


class PathologyReportResponse(BaseModel):
    id: int
    patient_id: int
    patient_name: Optional[str] = None
    patient_code: Optional[str] = None
    doctor_id: Optional[int] = None
    doctor_name: Optional[str] = None
    doctor_specialization: Optional[str] = None
    test_type: str
    test_date: datetime
    sample_collection_date: datetime
    results: Optional[str] = None
    normal_ranges: Optional[str] = None
    remarks: Optional[str] = None
    is_critical: bool
    created_by: Optional[int] = None
    created_by_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============== 事件 Schemas ==============

class EventResponse(BaseModel):
    event_id: str
    event_type: str
    timestamp: datetime
    source: str
    data: dict
