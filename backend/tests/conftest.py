import os
import sys

# Add the parent directory (backend) to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import importlib
import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event

from config import settings
from main import app

SHOP_FILES = {
    "__init__.py": "",
    "base.py": (
        "from sqlalchemy.orm import DeclarativeBase\n"
        "\n"
        "\n"
        "class Base(DeclarativeBase):\n"
        "    pass\n"
    ),
    "products.py": (
        '"""Catalog models."""\n'
        "from sqlalchemy import Boolean, Column, Integer, String, Text\n"
        "\n"
        "from .base import Base\n"
        "\n"
        "\n"
        "class Product(Base):\n"
        '    __tablename__ = "products"\n'
        "\n"
        "    id = Column(Integer, primary_key=True)\n"
        "    name = Column(String, nullable=False)\n"
        "    active = Column(Boolean, nullable=False)\n"
        "    description = Column(Text)\n"
    ),
    "orders.py": (
        "# -*- coding: utf-8 -*-\n"
        "from sqlalchemy import Column, DateTime, ForeignKey, Integer, String\n"
        "from sqlalchemy.orm import relationship\n"
        "\n"
        "from .base import Base\n"
        "\n"
        "\n"
        "class Order(Base):\n"
        '    __tablename__ = "orders"\n'
        "\n"
        "    id = Column(Integer, primary_key=True)\n"
        '    status = Column(String(20), nullable=False, server_default="pending")\n'
        "    created_at = Column(DateTime, nullable=False)\n"
        "    updated_at = Column(DateTime, nullable=False)\n"
        "\n"
        '    line_items = relationship("LineItem", back_populates="order")\n'
        "\n"
        "\n"
        "# one row per ordered product\n"
        "class LineItem(Base):\n"
        '    __tablename__ = "line_items"\n'
        "\n"
        '    order_id = Column(Integer, ForeignKey("orders.id"), primary_key=True)\n'
        "    line_number = Column(Integer, primary_key=True)\n"
        "    quantity = Column(Integer, nullable=False)\n"
        "\n"
        '    order = relationship("Order", back_populates="line_items")\n'
    ),
    "audit.py": (
        "from sqlalchemy import Column, DateTime, Integer, String\n"
        "\n"
        "from .base import Base\n"
        "\n"
        "\n"
        "class AuditLog(Base):\n"
        '    __tablename__ = "audit_logs"\n'
        '    __table_args__ = {"schema": "audit"}\n'
        "\n"
        "    id = Column(Integer, primary_key=True)\n"
        "    action = Column(String(50), nullable=False)\n"
        "    created_at = Column(DateTime, nullable=False)\n"
        "    updated_at = Column(DateTime, nullable=False)\n"
    ),
}


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sqlite_engine(tmp_path):
    """File-backed SQLite engine with a second database attached as schema "audit"."""
    audit_path = tmp_path / "audit.db"
    engine = create_engine(f"sqlite:///{tmp_path / 'app.db'}")

    @event.listens_for(engine, "connect")
    def attach_audit(dbapi_conn, _record):
        dbapi_conn.execute(f"ATTACH DATABASE '{audit_path}' AS audit")

    yield engine
    engine.dispose()


@pytest.fixture
def shop(tmp_path, sqlite_engine):
    """A throwaway models package written to disk, imported, and created in SQLite."""
    pkg = f"shop_{uuid.uuid4().hex[:8]}"
    root = tmp_path / "src"
    (root / pkg).mkdir(parents=True)
    for name, source in SHOP_FILES.items():
        (root / pkg / name).write_text(source, encoding="utf-8")

    sys.path.insert(0, str(root))
    try:
        base_module = importlib.import_module(f"{pkg}.base")
        for name in ("products", "orders", "audit"):
            importlib.import_module(f"{pkg}.{name}")
        base_module.Base.metadata.create_all(sqlite_engine)
        yield SimpleNamespace(
            name=pkg,
            path=root / pkg,
            Base=base_module.Base,
            engine=sqlite_engine,
            originals={name: source for name, source in SHOP_FILES.items()},
        )
    finally:
        sys.path.remove(str(root))
        for module in [m for m in sys.modules if m == pkg or m.startswith(pkg + ".")]:
            del sys.modules[module]


@pytest.fixture
def override_settings(monkeypatch):
    """Set attributes on the shared settings object for one test."""
    def _override(**values):
        for key, value in values.items():
            monkeypatch.setattr(settings, key, value)
    return _override
