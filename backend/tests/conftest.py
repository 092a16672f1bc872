"""
Pytest 配置和共享 fixtures
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from decimal import Decimal

from hmis.database import Base, get_db
from hmis.models import ontology  # noqa
from hmis.models.ontology import User, UserRole, Patient, Gender, PatientType, Room, Doctor
from hmis.security.auth import get_password_hash, create_access_token
from hmis.main import app
from hmis_core.engine.event_bus import event_bus


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def clean_event_bus():
    """清空事件历史"""
    event_bus.clear_history()
    yield event_bus
    event_bus.clear_history()


# ============== 认证相关 Fixtures ==============

def _create_user(db_session, username, name, role):
    user = User(
        username=username,
        password_hash=get_password_hash("123456"),
        name=name,
        role=role,
        is_active=True
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    """创建管理员"""
    return _create_user(db_session, "admin", "系统管理员", UserRole.ADMIN)


@pytest.fixture
def operator_user(db_session):
    """创建操作员"""
    return _create_user(db_session, "operator1", "前台操作员", UserRole.OPERATOR)


@pytest.fixture
def admin_token(admin_user):
    return create_access_token(admin_user.id, admin_user.role)


@pytest.fixture
def operator_token(operator_user):
    return create_access_token(operator_user.id, operator_user.role)


@pytest.fixture
def admin_auth_headers(admin_token):
    """返回管理员认证的请求头"""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def operator_auth_headers(operator_token):
    """返回操作员认证的请求头"""
    return {"Authorization": f"Bearer {operator_token}"}


# ============== 实体相关 Fixtures ==============

@pytest.fixture
def sample_patient(db_session):
    """创建测试患者"""
    patient = Patient(
        patient_code="PT-241019-AAAAAA",
        full_name="张三",
        age=45,
        gender=Gender.MALE,
        phone="13800138000",
        patient_type=PatientType.IN_PATIENT
    )
    db_session.add(patient)
    db_session.commit()
    db_session.refresh(patient)
    return patient


@pytest.fixture
def second_patient(db_session):
    """创建第二个测试患者"""
    patient = Patient(
        patient_code="PT-241019-BBBBBB",
        full_name="李四",
        age=30,
        gender=Gender.FEMALE,
        phone="13900139000",
        patient_type=PatientType.IN_PATIENT
    )
    db_session.add(patient)
    db_session.commit()
    db_session.refresh(patient)
    return patient


@pytest.fixture
def sample_room(db_session):
    """创建测试病房（空闲）"""
    room = Room(
        room_number="101",
        room_type="General",
        charges_per_day=Decimal("500.00"),
        occupancy_state="Available",
        version=1
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_doctor(db_session):
    """创建测试医生"""
    doctor = Doctor(
        first_name="建国",
        last_name="王",
        specialization="Pathology",
        qualification="MD",
        phone="13700137000",
        email="wang@hospital.test",
        visiting_hours="09:00-12:00"
    )
    db_session.add(doctor)
    db_session.commit()
    db_session.refresh(doctor)
    return doctor
