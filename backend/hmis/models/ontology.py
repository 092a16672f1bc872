"""
ORM 模型定义
核心层的 Room / Bill 以记录形式存放在这里；状态与金额规则只在 hmis_core 中
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum, Boolean, JSON
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from hmis.database import Base
from hmis_core.domain.billing import PaymentStatus
from hmis_core.domain.room import OccupancyState


# ============== 列类型 ==============

class ExactDecimal(TypeDecorator):
    """
    以十进制字符串保存 Decimal

    金额与百分比不做舍入，读回的值与写入的值完全相同，
    派生金额与输入之间的关系在存储前后保持一致。
    """
    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value if isinstance(value, Decimal) else Decimal(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


# ============== 枚举定义 ==============

class UserRole(str, Enum):
    """用户角色"""
    ADMIN = "Admin"            # 管理员
    OPERATOR = "Operator"      # 操作员


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class PatientType(str, Enum):
    """患者类型"""
    IN_PATIENT = "In-Patient"    # 住院
    OUT_PATIENT = "Out-Patient"  # 门诊


# ============== 模型 ==============

class User(Base):
    """系统用户"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)  # 登录账号
    email = Column(String(100), unique=True, nullable=True)
    password_hash = Column(String(255), nullable=False)  # 密码哈希
    name = Column(String(100), nullable=False)           # 姓名
    role = Column(SQLEnum(UserRole), nullable=False)
    is_active = Column(Boolean, default=True)            # 是否启用
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bills = relationship("Bill", back_populates="creator")
    pathology_reports = relationship("PathologyReport", back_populates="creator")


class Patient(Base):
    """患者"""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    patient_code = Column(String(30), unique=True, nullable=False)  # 病历号，如 PT-241019-0A1B2C
    full_name = Column(String(100), nullable=False)
    age = Column(Integer)
    gender = Column(SQLEnum(Gender))
    phone = Column(String(20))
    email = Column(String(100))
    address = Column(Text)
    patient_type = Column(SQLEnum(PatientType), default=PatientType.OUT_PATIENT)
    medical_history = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    pathology_reports = relationship("PathologyReport", back_populates="patient")


class Doctor(Base):
    """医生"""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    specialization = Column(String(100), nullable=False)  # 专科
    qualification = Column(String(100))                   # 资历，如 MBBS, MD
    phone = Column(String(20))
    email = Column(String(100), unique=True, nullable=True)
    visiting_hours = Column(String(100))                  # 如 "Mon-Fri 9am-5pm"
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    pathology_reports = relationship("PathologyReport", back_populates="doctor")


class PathologyReport(Base):
    """病理/检验报告"""
    __tablename__ = "pathology_reports"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=True)
    test_type = Column(String(100), nullable=False)       # 检验项目
    test_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    sample_collection_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    results = Column(Text)
    normal_ranges = Column(Text)
    remarks = Column(Text)
    is_critical = Column(Boolean, default=False)          # 危急值
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    patient = relationship("Patient", back_populates="pathology_reports")
    doctor = relationship("Doctor", back_populates="pathology_reports")
    creator = relationship("User", back_populates="pathology_reports")


class Room(Base):
    """
    病房记录
    occupancy_state 存字符串值，与 hmis_core.domain.room.OccupancyState 一致
    """
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(10), unique=True, nullable=False)  # 房间号
    room_type = Column(String(20), nullable=False)                 # General / Semi-Private / Private / ICU
    charges_per_day = Column(ExactDecimal, nullable=False, default=Decimal("0"))
    occupancy_state = Column(String(20), nullable=False, default=OccupancyState.AVAILABLE.value, index=True)
    current_patient_ref = Column(String(50), nullable=True)       # 当前占用患者 ID
    occupied_since = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)           # 乐观并发版本号
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class Bill(Base):
    """
    账单记录
    明细以 JSON 保存；四个派生金额由 hmis_core.domain.billing 推导后写入，
    金额与百分比列均为 ExactDecimal，不做舍入
    """
    __tablename__ = "bills"

    id = Column(Integer, primary_key=True, index=True)
    patient_ref = Column(String(50), nullable=False, index=True)
    bill_type = Column(String(30))
    line_items = Column(JSON, nullable=False, default=list)
    discount_percent = Column(ExactDecimal, default=Decimal("0"))
    tax_rate_percent = Column(ExactDecimal, default=Decimal("0"))
    subtotal = Column(ExactDecimal, default=Decimal("0"))
    tax_amount = Column(ExactDecimal, default=Decimal("0"))
    discount_amount = Column(ExactDecimal, default=Decimal("0"))
    total = Column(ExactDecimal, default=Decimal("0"))
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(30))
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    creator = relationship("User", back_populates="bills")
