# Overview: Brand / category / supplier catalogs.

"""
Catalog service

Brands and categories are stored upper-cased so "zara" and "ZARA" are the
same entry. Supplier names keep their casing. Entries referenced by any
product cannot be deleted.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Brand, Category, Supplier, Product
from ..validation import ValidationError, NotFoundError, ConflictError, clean_str

CATALOGS = {
    "brands": (Brand, Product.brand_id),
    "categories": (Category, Product.category_id),
    "suppliers": (Supplier, Product.supplier_id),
}

_LABELS = {Brand: "Brand", Category: "Category", Supplier: "Supplier"}

SUPPLIER_FIELDS = {
    "contact": 120,
    "phone": 40,
    "email": 255,
    "address": 255,
}


def _model_for(kind: str):
    try:
        return CATALOGS[kind][0]
    except KeyError:
        raise NotFoundError(f"Unknown catalog {kind!r}")


def normalize_name(model, value) -> str:
    name = clean_str(value, "name", max_length=120, required=True)
    if model in (Brand, Category):
        name = name.upper()
    return name


def _ensure_unique(model, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(model).filter(db.func.lower(model.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"{_LABELS[model]} {name!r} already exists")


def _apply_fields(entry, model, payload: dict) -> None:
    if "description" in payload and model in (Brand, Category):
        entry.description = clean_str(payload.get("description"), "description", max_length=255)
    if model is Supplier:
        for field, max_length in SUPPLIER_FIELDS.items():
            if field in payload:
                setattr(entry, field, clean_str(payload.get(field), field, max_length=max_length))


def list_entries(kind: str) -> list:
    model = _model_for(kind)
    return db.session.query(model).order_by(model.name.asc()).all()


def get_entry(kind: str, entry_id: int):
    model = _model_for(kind)
    entry = db.session.get(model, entry_id)
    if entry is None:
        raise NotFoundError(f"{_LABELS[model]} not found")
    return entry


def create_entry(kind: str, payload: dict):
    model = _model_for(kind)
    name = normalize_name(model, payload.get("name"))
    _ensure_unique(model, name)

    entry = model(name=name)
    _apply_fields(entry, model, payload)
    db.session.add(entry)
    db.session.commit()
    return entry


def update_entry(kind: str, entry_id: int, payload: dict):
    entry = get_entry(kind, entry_id)
    model = type(entry)
    if "name" in payload:
        name = normalize_name(model, payload.get("name"))
        _ensure_unique(model, name, exclude_id=entry.id)
        entry.name = name
    _apply_fields(entry, model, payload)
    db.session.commit()
    return entry


def delete_entry(kind: str, entry_id: int) -> None:
    entry = get_entry(kind, entry_id)
    fk_column = CATALOGS[kind][1]
    in_use = db.session.query(Product.id).filter(fk_column == entry.id).count()
    if in_use:
        raise ConflictError(
            f"{_LABELS[type(entry)]} is used by {in_use} product(s) and cannot be deleted"
        )
    db.session.delete(entry)
    db.session.commit()


def find_or_create(model, raw_name) -> int | None:
    """
    Resolve a catalog entry by name, creating it when missing.

    Used by the product importer. Does not commit; returns None for blank names.
    """
    if raw_name is None or not str(raw_name).strip():
        return None
    name = normalize_name(model, raw_name)
    entry = db.session.query(model).filter(db.func.lower(model.name) == name.lower()).first()
    if entry is None:
        entry = model(name=name)
        db.session.add(entry)
        db.session.flush()
    return entry.id


def ensure_exists(model, entry_id) -> None:
    if entry_id is None:
        return
    if db.session.get(model, entry_id) is None:
        raise ValidationError(f"{_LABELS[model]} {entry_id} does not exist")
