# ========================= farmguide/store.py =========================

import os
import json
import math
import uuid
import logging
import threading
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List, Optional

from farmguide.config import DEFAULT_LANGUAGE

logger = logging.getLogger("store")

LANGUAGES = ("hi", "en")
FARMING_CONTEXTS = ("diagnosis", "inventory", "general")
MESSAGE_ROLES = ("user", "assistant")
INVENTORY_CATEGORIES = ("fertilizer", "seed", "crop", "pesticide", "equipment")

CATEGORY_LABELS = {
    "fertilizer": {"hi": "खाद", "en": "Fertilizer"},
    "seed": {"hi": "बीज", "en": "Seed"},
    "crop": {"hi": "फसल", "en": "Crop"},
    "pesticide": {"hi": "कीटनाशक", "en": "Pesticide"},
    "equipment": {"hi": "उपकरण", "en": "Equipment"},
}


def _now() -> datetime:
    return datetime.now()


@dataclass
class Message:
    role: str
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class InventoryItem:
    category: str
    name: str
    quantity: float
    unit: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    last_updated: datetime = field(default_factory=_now)
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_updated"] = self.last_updated.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "InventoryItem":
        return cls(
            id=data["id"],
            category=validate_category(data["category"]),
            name=validate_name(data["name"]),
            quantity=validate_quantity(data["quantity"]),
            unit=clean_unit(data.get("unit")),
            last_updated=datetime.fromisoformat(data["last_updated"]),
            notes=data.get("notes"),
        )


def validate_category(category: str) -> str:
    category = str(category or "").strip().lower()
    if category not in INVENTORY_CATEGORIES:
        raise ValueError(f"Invalid inventory category: {category!r}")
    return category


def validate_quantity(quantity) -> float:
    try:
        value = float(quantity)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid quantity: {quantity!r}")
    if not math.isfinite(value):
        raise ValueError(f"Invalid quantity: {quantity!r}")
    if value < 0:
        raise ValueError("Quantity cannot be negative")
    return value


def validate_name(name) -> str:
    name = str(name or "").strip()
    if not name:
        raise ValueError("Item name is required")
    return name


def clean_unit(unit) -> str:
    return str(unit or "").strip()


class AppStore:
    """
    Shared application state: chat messages, language, farming context
    and the farm inventory.

    Only the inventory survives a restart; it is written as JSON to
    `persist_path` after every inventory change.
    """

    def __init__(self, persist_path: Optional[str] = None):
        self._lock = threading.RLock()
        self.persist_path = persist_path

        self.messages: List[Message] = []
        self.is_loading = False
        self.selected_language = DEFAULT_LANGUAGE if DEFAULT_LANGUAGE in LANGUAGES else "hi"
        self.farming_context = "diagnosis"
        self.is_speaking = False
        self.inventory: List[InventoryItem] = self._load_inventory()

    # ---------- CHAT ----------
    def add_message(self, role: str, content: str) -> Message:
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Invalid message role: {role!r}")
        message = Message(role=role, content=content)
        with self._lock:
            self.messages.append(message)
        return message

    def set_loading(self, loading: bool):
        self.is_loading = bool(loading)

    def clear_messages(self):
        with self._lock:
            self.messages = []

    def recent_history(self, limit: int) -> List[dict]:
        if limit <= 0:
            return []
        with self._lock:
            recent = self.messages[-limit:]
        return [{"role": m.role, "content": m.content} for m in recent]

    # ---------- LANGUAGE / CONTEXT ----------
    def set_language(self, language: str):
        if language not in LANGUAGES:
            raise ValueError(f"Unsupported language: {language!r}")
        self.selected_language = language

    def set_farming_context(self, context: str):
        if context not in FARMING_CONTEXTS:
            raise ValueError(f"Unknown farming context: {context!r}")
        self.farming_context = context

    def set_is_speaking(self, speaking: bool):
        self.is_speaking = bool(speaking)

    # ---------- INVENTORY ----------
    def add_inventory_item(self, category, name, quantity, unit, notes=None) -> InventoryItem:
        item = InventoryItem(
            category=validate_category(category),
            name=validate_name(name),
            quantity=validate_quantity(quantity),
            unit=clean_unit(unit),
            notes=notes,
        )
        with self._lock:
            self.inventory.append(item)
            self._save_inventory()
        return item

    def update_inventory_item(self, item_id: str, /, **updates) -> InventoryItem:
        if "category" in updates:
            updates["category"] = validate_category(updates["category"])
        if "quantity" in updates:
            updates["quantity"] = validate_quantity(updates["quantity"])
        if "name" in updates:
            updates["name"] = validate_name(updates["name"])
        if "unit" in updates:
            updates["unit"] = clean_unit(updates["unit"])
        unknown = set(updates) - {"category", "name", "quantity", "unit", "notes"}
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        with self._lock:
            item = self._get(item_id)
            for key, value in updates.items():
                setattr(item, key, value)
            item.last_updated = _now()
            self._save_inventory()
        return item

    def remove_inventory_item(self, item_id: str) -> InventoryItem:
        with self._lock:
            item = self._get(item_id)
            self.inventory = [i for i in self.inventory if i.id != item_id]
            self._save_inventory()
        return item

    def get_inventory_by_category(self, category: str) -> List[InventoryItem]:
        with self._lock:
            return [i for i in self.inventory if i.category == category]

    def find_inventory_item(self, name: str) -> Optional[InventoryItem]:
        query = (name or "").strip().lower()
        if not query:
            return None
        with self._lock:
            for item in self.inventory:
                if query in item.name.lower():
                    return item
        return None

    def grouped_inventory(self) -> Dict[str, List[InventoryItem]]:
        with self._lock:
            return {
                category: [i for i in self.inventory if i.category == category]
                for category in INVENTORY_CATEGORIES
            }

    def _get(self, item_id: str) -> InventoryItem:
        for item in self.inventory:
            if item.id == item_id:
                return item
        raise KeyError(item_id)

    # ---------- PERSISTENCE ----------
    def _load_inventory(self) -> List[InventoryItem]:
        if not self.persist_path or not os.path.exists(self.persist_path):
            return []
        try:
            with open(self.persist_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            entries = list(data.get("inventory", []))
        except (OSError, ValueError, TypeError, AttributeError):
            logger.exception("Could not load inventory from %s, starting empty", self.persist_path)
            return []

        items = []
        for entry in entries:
            try:
                items.append(InventoryItem.from_dict(entry))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping invalid inventory entry %r: %s", entry, exc)
        return items

    def _save_inventory(self):
        if not self.persist_path:
            return
        directory = os.path.dirname(self.persist_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.persist_path, "w", encoding="utf-8") as f:
            json.dump(
                {"inventory": [item.to_dict() for item in self.inventory]},
                f,
                ensure_ascii=False,
                indent=2,
            )
