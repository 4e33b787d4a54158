# services/db.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


class Base(DeclarativeBase):
    pass


_engine: Optional[Engine] = None
_Session: Optional[sessionmaker] = None


def init_db(uri: str, echo: bool = False) -> Engine:
    """
    用 Config.SQLALCHEMY_DATABASE_URI 建立 Engine 與 Session factory，
    每個 app 只做一次；測試會換成暫存的 sqlite 檔。
    """
    global _engine, _Session

    _engine = create_engine(uri, echo=echo, future=True)
    _Session = sessionmaker(bind=_engine, future=True, autoflush=False)
    return _engine


def get_session():
    """
    with get_session() as s:
        ...
    """
    assert _Session is not None, "DB not initialized; call init_db() first."
    return _Session()


def get_engine() -> Optional[Engine]:
    return _engine


def create_all() -> None:
    from services import models  # noqa: F401  建表前先載入 models
    engine = get_engine()
    assert engine is not None, "DB engine not initialized. Call init_db() first."
    Base.metadata.create_all(bind=engine)
