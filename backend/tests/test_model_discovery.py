import enum

import pytest
from sqlalchemy import Column, Enum, ForeignKey, Integer, String, event
from sqlalchemy.orm import DeclarativeBase, validates

from core.errors import ConfigurationError, ModelDetectionError
from core.model_discovery import discover_models, load_declarative_base


class Base(DeclarativeBase):
    pass


class ApplicationRecord(Base):
    __abstract__ = True


class Vehicle(ApplicationRecord):
    __tablename__ = "vehicles"
    __mapper_args__ = {"polymorphic_on": "type", "polymorphic_identity": "vehicle"}

    id = Column(Integer, primary_key=True)
    type = Column(String(50))


class Car(Vehicle):
    __mapper_args__ = {"polymorphic_identity": "car"}


class Truck(Vehicle):
    __mapper_args__ = {"polymorphic_identity": "truck"}


class Employee(Base):
    __tablename__ = "employees"
    __mapper_args__ = {"polymorphic_on": "kind", "polymorphic_identity": "employee"}

    id = Column(Integer, primary_key=True)
    kind = Column(String(20))


class Manager(Employee):
    __tablename__ = "managers"
    __mapper_args__ = {"polymorphic_identity": "manager"}

    id = Column(Integer, ForeignKey("employees.id"), primary_key=True)


class Status(enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Entry(Base):
    __tablename__ = "entries"
    __table_args__ = {"info": {"hierarchy_table": "entry_paths"}}
    __readonly__ = True

    entryable_types = ["Message", "Comment"]

    id = Column(Integer, primary_key=True)
    status = Column(Enum(Status))
    priority = Column(Enum("low", "high", name="priority", native_enum=False))
    entryable_type = Column(String(50))
    entryable_id = Column(Integer)

    @classmethod
    def refresh(cls):
        pass


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    email = Column(String(255))
    login = Column(String(50))
    nickname = Column(String(50))

    @validates("email", "login")
    def validate_identity(self, key, value):
        return value.strip()

    @validates("nickname", include_removes=True, include_backrefs=False)
    def validate_nickname(self, key, value, is_remove):
        return value


@event.listens_for(Account, "before_insert")
def stamp_created(mapper, connection, target):
    pass


def normalise_email(mapper, connection, target):
    pass


def audit_change(mapper, connection, target):
    pass


def touch_vehicle(mapper, connection, target):
    pass


event.listen(Account, "before_insert", normalise_email)
event.listen(Account, "after_update", audit_change, raw=True, retval=True)
event.listen(Vehicle, "before_update", touch_vehicle, propagate=True)


def by_name(descriptors):
    return {d.name: d for d in descriptors}


# ── Loading ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("path", ["", "no_colon", "missing_pkg_xyz.models:Base", "os:NoSuchBase"])
def test_load_declarative_base_errors(path):
    with pytest.raises(ConfigurationError):
        load_declarative_base(path)


def test_load_declarative_base(shop):
    assert load_declarative_base(f"{shop.name}.base:Base") is shop.Base


def test_load_declarative_base_reads_settings(shop, override_settings):
    override_settings(MODELS_MODULE=f"{shop.name}.base:Base")
    assert load_declarative_base() is shop.Base


def test_not_a_declarative_base():
    with pytest.raises(ModelDetectionError):
        discover_models(object())


# ── Shop package ──────────────────────────────────────────────────────────────

def test_discovery_order_and_tables(shop):
    models = discover_models(shop.Base)
    assert [m.name for m in models] == ["AuditLog", "LineItem", "Order", "Product"]
    models = by_name(models)
    assert models["AuditLog"].table_name == "audit.audit_logs"
    assert models["LineItem"].primary_keys == ["order_id", "line_number"]
    assert models["Product"].source_file.endswith("products.py")
    assert models["Order"].module == f"{shop.name}.orders"


def test_relationships_both_directions(shop):
    models = by_name(discover_models(shop.Base))
    [order] = models["LineItem"].associations
    assert order.kind == "belongs_to"
    assert order.foreign_key == "order_id"
    assert order.target_type == "Order"
    assert order.target_table == "orders"
    assert order.inverse_of == "line_items"
    assert order.reverse_kinds == ["has_many"]
    assert order.target_columns == ["id", "status", "created_at", "updated_at"]

    [line_items] = models["Order"].associations
    assert line_items.kind == "has_many"
    assert line_items.foreign_key == "order_id"
    assert line_items.inverse_of == "order"
    assert line_items.reverse_kinds == ["belongs_to"]
    assert line_items.options["lazy"] == "select"
    assert line_items.options["order_by"] is False


# ── Inheritance, enums and class conventions ──────────────────────────────────

def test_abstract_models_are_discovered():
    models = by_name(discover_models(Base))
    record = models["ApplicationRecord"]
    assert record.abstract
    assert record.table_name is None


def test_single_table_inheritance():
    models = by_name(discover_models(Base))
    vehicle, car = models["Vehicle"].inheritance, models["Car"].inheritance
    assert vehicle.strategy == "single"
    assert vehicle.is_base
    assert vehicle.type_column == "type"
    assert vehicle.subclasses == ["Car", "Truck"]
    assert car.is_base is False
    assert car.base_class == "Vehicle"
    assert car.identity == "car"
    assert car.siblings == ["Truck"]
    assert models["Car"].table_name == "vehicles"


def test_joined_table_inheritance():
    models = by_name(discover_models(Base))
    assert models["Employee"].inheritance.strategy == "joined"
    assert models["Manager"].inheritance.strategy == "joined"
    assert models["Manager"].inheritance.type_column == "kind"


def test_enums_and_class_conventions():
    entry = by_name(discover_models(Base))["Entry"]
    status, priority = entry.enums
    assert status.name == "status"
    assert list(status.values) == ["DRAFT", "PUBLISHED"]
    assert status.column_type == "enum"
    assert priority.values == {"low": "low", "high": "high"}
    assert priority.column_type == "string"

    assert entry.delegated_type.type_column == "entryable_type"
    assert entry.delegated_type.types == ["Message", "Comment"]
    assert entry.readonly and entry.has_refresh
    assert entry.info == {"hierarchy_table": "entry_paths"}
    assert entry.inheritance is None


# ── Callbacks ─────────────────────────────────────────────────────────────────

def test_event_listeners_and_validators():
    account = by_name(discover_models(Base))["Account"]
    events = [(c.event, c.method) for c in account.callbacks if c.kind == "event"]
    assert events == [
        ("before_insert", "stamp_created"),
        ("before_insert", "normalise_email"),
        ("after_update", "audit_change"),
    ]

    identity, nickname = [c for c in account.callbacks if c.kind == "validator"]
    assert identity.event == "validates"
    assert identity.method == "validate_identity"
    assert identity.columns == ["email", "login"]
    assert identity.options == {}
    assert nickname.columns == ["nickname"]
    assert nickname.options == {"include_removes": True, "include_backrefs": False}


def test_propagated_listeners_reach_subclasses():
    models = by_name(discover_models(Base))
    for name in ("Vehicle", "Car", "Truck"):
        assert [(c.event, c.method) for c in models[name].callbacks] == [("before_update", "touch_vehicle")]
    assert models["Entry"].callbacks == []
