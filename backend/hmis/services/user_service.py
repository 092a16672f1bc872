"""
用户服务 - 登录认证与账号管理
"""
from typing import List, Optional
import logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hmis.models.ontology import User, UserRole
from hmis.security.auth import get_password_hash, verify_password, create_access_token

logger = logging.getLogger(__name__)


class UserService:
    """用户服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_users(self) -> List[User]:
        return self.db.query(User).order_by(User.id).all()

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def create_user(self, username: str, password: str, name: str,
                    role: UserRole = UserRole.OPERATOR, email: Optional[str] = None) -> User:
        """创建用户"""
        if self.get_user_by_username(username):
            raise ValueError(f"Username '{username}' already exists")

        user = User(
            username=username,
            email=email,
            password_hash=get_password_hash(password),
            name=name,
            role=role,
            is_active=True
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValueError("A user with this email already exists")
        self.db.refresh(user)
        logger.info(f"User {username} created with role {role.value}")
        return user

    def deactivate_user(self, user_id: int, operator_id: int) -> User:
        """删除用户（实际上是停用，保留账单、报告上的创建人）"""
        user = self.get_user(user_id)
        if not user:
            raise ValueError("User not found")
        if user.id == operator_id:
            raise ValueError("Admin cannot delete themselves")

        user.is_active = False
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.username} deactivated")
        return user

    def authenticate(self, username: str, password: str) -> Optional[dict]:
        """认证登录"""
        user = self.get_user_by_username(username)
        if not user:
            return None

        if not user.is_active:
            raise ValueError("Account is disabled")

        if not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {username}")
            return None

        token = create_access_token(user.id, user.role)
        logger.info(f"User {username} logged in")

        return {
            'access_token': token,
            'token_type': 'bearer',
            'user': {
                'id': user.id,
                'username': user.username,
                'name': user.name,
                'email': user.email,
                'role': user.role,
                'is_active': user.is_active,
                'created_at': user.created_at
            }
        }


__all__ = ["UserService"]
