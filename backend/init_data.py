"""
初始化数据脚本
创建：默认账号、病房

默认账号（密码均为 123456）：
  admin       系统管理员   Admin
  operator1   前台操作员   Operator
"""
import sys
sys.path.insert(0, '.')

from decimal import Decimal
from hmis.database import SessionLocal, init_db
from hmis.models.ontology import User, UserRole
from hmis.services.room_service import RoomService
from hmis.services.user_service import UserService
from hmis_core.domain.room import RoomType


def init_users(db):
    """初始化默认账号"""
    service = UserService(db)
    users = [
        ("admin", "系统管理员", UserRole.ADMIN),
        ("operator1", "前台操作员", UserRole.OPERATOR),
    ]
    for username, name, role in users:
        if not service.get_user_by_username(username):
            service.create_user(username, "123456", name, role)
    print(f"账号初始化完成: {db.query(User).count()} 个")


def init_rooms(db):
    """初始化病房：每层 General 与 Semi-Private 为主，顶层为 Private 与 ICU"""
    room_configs = {
        1: [(101, RoomType.GENERAL), (102, RoomType.GENERAL), (103, RoomType.GENERAL),
            (104, RoomType.SEMI_PRIVATE), (105, RoomType.SEMI_PRIVATE)],
        2: [(201, RoomType.GENERAL), (202, RoomType.GENERAL),
            (203, RoomType.SEMI_PRIVATE), (204, RoomType.SEMI_PRIVATE)],
        3: [(301, RoomType.PRIVATE), (302, RoomType.PRIVATE),
            (303, RoomType.ICU), (304, RoomType.ICU)],
    }
    charges = {
        RoomType.GENERAL: Decimal('500.00'),
        RoomType.SEMI_PRIVATE: Decimal('1200.00'),
        RoomType.PRIVATE: Decimal('2500.00'),
        RoomType.ICU: Decimal('6000.00'),
    }

    service = RoomService(db)
    existing = {room.room_number for room in service.get_rooms()}
    created = 0
    for configs in room_configs.values():
        for num, room_type in configs:
            if str(num) in existing:
                continue
            service.occupancy.register(str(num), room_type, charges[room_type])
            created += 1
    print(f"病房初始化完成: 新增 {created} 间")


def main():
    init_db()
    db = SessionLocal()
    try:
        init_users(db)
        init_rooms(db)
    finally:
        db.close()


if __name__ == '__main__':
    main()
