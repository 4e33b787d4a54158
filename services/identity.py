# services/identity.py
"""
身分驗證協作者與 IdentityGate。

IdentityProvider 是唯一碰 users 表與 Flask-Login 的地方；
頁面只透過 IdentityGate.resolve() 取得「目前有沒有登入的使用者」。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from flask_login import current_user, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from services.db import get_session
from services.errors import AuthenticationError, IdentityError, SignUpError
from services.models import User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def validate_password(password: str, confirm_password: str) -> Optional[str]:
    if password != confirm_password:
        return "Passwords do not match"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    return None


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class IdentityProvider:
    def load_user(self, user_id: str) -> Optional[User]:
        try:
            uid = int(user_id)
        except (TypeError, ValueError):
            return None
        try:
            with get_session() as s:
                return s.get(User, uid)
        except SQLAlchemyError as e:
            logger.exception("load user failed", extra={"user_id": uid})
            raise IdentityError() from e

    def get_current_user(self) -> Optional[User]:
        if current_user and current_user.is_authenticated:
            return current_user._get_current_object()
        return None

    def sign_up(self, email: str, password: str, confirm_password: str) -> User:
        email = normalize_email(email)
        if not email or not password:
            raise SignUpError("Please enter your email and password")
        problem = validate_password(password, confirm_password)
        if problem:
            raise SignUpError(problem)

        try:
            with get_session() as s:
                if s.query(User).filter_by(email=email).one_or_none():
                    raise SignUpError("An account with this email already exists")
                user = User(email=email)
                user.set_password(password)
                s.add(user)
                s.commit()
                s.refresh(user)
        except SQLAlchemyError as e:
            logger.exception("sign up failed")
            raise SignUpError() from e

        login_user(user)
        logger.info("user signed up", extra={"user_id": user.id})
        return user

    def sign_in(self, email: str, password: str) -> User:
        email = normalize_email(email)
        if not email or not password:
            raise AuthenticationError("Please enter your email and password")

        try:
            with get_session() as s:
                user = s.query(User).filter_by(email=email).one_or_none()
        except SQLAlchemyError as e:
            logger.exception("sign in lookup failed")
            raise IdentityError() from e

        if not user or not user.check_password(password):
            raise AuthenticationError()

        login_user(user)
        return user

    def sign_out(self) -> None:
        logout_user()

    def treat_as_anonymous(self) -> None:
        # 這個 request 剩下的部分（含 template 裡的 current_user）都當訪客，不再重查
        current_app.login_manager._update_request_context_with_user()


@dataclass(frozen=True)
class SessionResult:
    user: Optional[User] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None


class IdentityGate:
    def __init__(self, identity: IdentityProvider):
        self._identity = identity

    def resolve(self) -> SessionResult:
        try:
            return SessionResult(self._identity.get_current_user())
        except IdentityError:
            logger.warning("session lookup failed; continuing as guest")
            self._identity.treat_as_anonymous()
            return SessionResult()
