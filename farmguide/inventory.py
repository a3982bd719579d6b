# farmguide/inventory.py

import re
import json
import logging

from farmguide.llm import query_farming_llm
from farmguide.store import AppStore, validate_quantity

logger = logging.getLogger("inventory")

JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

INVENTORY_ACTIONS = ("add", "update", "remove", "use")


class InventoryCommandError(ValueError):
    pass


def build_inventory_prompt(command: str) -> str:
    return (
        f'Parse this inventory command and respond ONLY with a JSON object: "{command}".\n'
        'Format: {"action": "add|update|remove|use", '
        '"category": "fertilizer|seed|crop|pesticide|equipment", '
        '"name": "item name", "quantity": number, "unit": "kg|liters|bags|etc"}'
    )


def extract_command_json(reply: str) -> dict:
    match = JSON_OBJECT_RE.search(reply or "")
    if not match:
        raise InventoryCommandError("No JSON object found in the model reply")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise InventoryCommandError(f"Invalid JSON in the model reply: {exc}") from exc

    if not isinstance(parsed, dict):
        raise InventoryCommandError("Model reply JSON is not an object")

    if not parsed.get("name") and parsed.get("item"):
        parsed["name"] = parsed["item"]

    action = str(parsed.get("action") or "").strip().lower()
    name = str(parsed.get("name") or "").strip()
    if not action or not name:
        raise InventoryCommandError("Command is missing an action or item name")

    parsed["action"] = action
    parsed["name"] = name
    return parsed


def apply_inventory_command(store: AppStore, parsed: dict) -> dict:
    action = parsed["action"]
    name = parsed["name"]

    if action == "add":
        item = _merge_or_add(store, parsed)
        return {"applied": True, "action": action, "item": item.to_dict()}

    if action not in INVENTORY_ACTIONS:
        logger.warning("Unknown inventory action %r", action)
        return {"applied": False, "action": action, "item": None}

    item = store.find_inventory_item(name)
    if item is None:
        logger.info("No inventory item matches %r for action %s", name, action)
        return {"applied": False, "action": action, "item": None}

    try:
        if action == "remove":
            changed = store.remove_inventory_item(item.id)
        else:
            quantity = validate_quantity(parsed.get("quantity"))
            if action == "use":
                quantity = max(item.quantity - quantity, 0.0)
            changed = store.update_inventory_item(item.id, quantity=quantity)
    except KeyError:
        # removed by another request after the lookup
        logger.info("Inventory item %s vanished before %s", item.id, action)
        return {"applied": False, "action": action, "item": None}

    return {"applied": True, "action": action, "item": changed.to_dict()}


def _merge_or_add(store: AppStore, parsed: dict):
    category = parsed.get("category")
    unit = str(parsed.get("unit") or "").strip()
    quantity = validate_quantity(parsed.get("quantity", 0))

    for existing in store.get_inventory_by_category(str(category or "").strip().lower()):
        if existing.name.lower() == parsed["name"].lower() and existing.unit.lower() == unit.lower():
            try:
                return store.update_inventory_item(existing.id, quantity=existing.quantity + quantity)
            except KeyError:
                break

    return store.add_inventory_item(
        category=category,
        name=parsed["name"],
        quantity=quantity,
        unit=unit,
        notes=parsed.get("notes"),
    )


def confirmation_message(result: dict, language: str) -> str:
    item = result.get("item")
    if not result.get("applied") or not item:
        if language == "hi":
            return "यह आइटम इन्वेंटरी में नहीं मिला या कमांड समझ नहीं आई। कृपया फिर से बोलें।"
        return "Could not find that item or understand the command. Please try again."

    quantity = f"{item['quantity']:g} {item['unit']}".strip()
    messages = {
        "add": {"hi": f"{item['name']} जोड़ा गया, अब स्टॉक: {quantity}",
                "en": f"Added {item['name']}, stock is now {quantity}"},
        "update": {"hi": f"{item['name']} का स्टॉक {quantity} किया गया",
                   "en": f"Updated {item['name']} to {quantity}"},
        "use": {"hi": f"{item['name']} इस्तेमाल किया गया, बचा स्टॉक: {quantity}",
                "en": f"Used {item['name']}, {quantity} left"},
        "remove": {"hi": f"{item['name']} इन्वेंटरी से हटाया गया",
                   "en": f"Removed {item['name']} from inventory"},
    }
    return messages[result["action"]]["hi" if language == "hi" else "en"]


def process_voice_command(store: AppStore, command: str) -> dict:
    """
    Turns a spoken inventory command into a stored change.

    The LLM is asked for a JSON object which is pulled out of its reply
    and applied to the store. Raises InventoryCommandError when the reply
    holds no usable command.
    """
    command = (command or "").strip()
    if not command:
        raise InventoryCommandError("Empty command")

    reply = query_farming_llm(build_inventory_prompt(command), "inventory")
    parsed = extract_command_json(reply)
    logger.info("Parsed inventory command %s", parsed)

    result = apply_inventory_command(store, parsed)
    result["reply"] = confirmation_message(result, store.selected_language)
    result["command"] = command
    return result
