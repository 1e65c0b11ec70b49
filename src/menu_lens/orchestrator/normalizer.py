from __future__ import annotations

import json
import re
import uuid
from typing import Any, Dict, List, Optional

from ..domain.constants import DIETARY_FLAGS
from ..domain.models import (
    DietaryInfo,
    IngredientTranslation,
    MenuItem,
    MenuSection,
    NutritionEstimate,
    ProcessedMenu,
)
from ..errors import ParseError
from ..logging import get_logger

LOG = get_logger("menu-normalizer")

DEFAULT_SECTION_NAME = "Menu"

_LEADING_FENCE = re.compile(r"^\s*```(?:json)?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"```\s*$")
_WHITESPACE = re.compile(r"\s+")


def strip_fences(text: str) -> str:
    """Drop a leading ```json / ``` token and a trailing ``` token."""
    cleaned = _LEADING_FENCE.sub("", text, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the outermost ``{...}`` of a model reply.

    Raises ParseError carrying the raw text when there is no object or the
    slice is not valid JSON.
    """
    cleaned = strip_fences(text or "")
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ParseError("No valid JSON object found in response", raw_text=text)
    try:
        data = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON in response: {exc.msg}", raw_text=text) from exc
    if not isinstance(data, dict):
        raise ParseError("Response JSON is not an object", raw_text=text)
    return data


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    out: List[str] = []
    for v in value:
        s = _text(v)
        if s:
            out.append(s)
    return out


def _vocab_list(value: Any) -> List[str]:
    return [s.lower() for s in _str_list(value)]


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return False


def _confidence(value: Any) -> float:
    if isinstance(value, bool):
        return 50
    try:
        c = float(value)
    except (TypeError, ValueError):
        return 50
    return c if c > 0 else 50


def _dietary(value: Any) -> DietaryInfo:
    flags = {name: False for name in DIETARY_FLAGS}
    if isinstance(value, dict):
        for name in DIETARY_FLAGS:
            if name in value:
                flags[name] = _as_bool(value[name])
    return DietaryInfo(
        vegetarian=flags["vegetarian"],
        vegan=flags["vegan"],
        halal=flags["halal"],
        kosher=flags["kosher"],
        pescatarian=flags["pescatarian"],
        gluten_free=flags["glutenFree"],
        dairy_free=flags["dairyFree"],
        nut_free=flags["nutFree"],
    )


def _translations(value: Any) -> List[IngredientTranslation]:
    if not isinstance(value, list):
        return []
    out: List[IngredientTranslation] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        original = _text(entry.get("original"))
        translation = _text(entry.get("translation")) or _text(entry.get("translated"))
        if not original or not translation:
            continue
        out.append(IngredientTranslation(original, translation, _text(entry.get("explanation")) or ""))
    return out


def _nutrition(value: Any) -> Optional[NutritionEstimate]:
    if not isinstance(value, dict):
        return None
    try:
        return NutritionEstimate(
            calories=float(value["calories"]),
            protein=float(value["protein"]),
            carbs=float(value["carbs"]),
            fat=float(value["fat"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


def new_item_id() -> str:
    return f"item_{uuid.uuid4().hex[:16]}"


def section_id(name: str) -> str:
    return _WHITESPACE.sub("-", name.lower())


def normalize_item(raw: Dict[str, Any], section_name: str) -> MenuItem:
    name = _text(raw.get("name")) or "Unknown Item"
    description = _text(raw.get("description")) or ""
    return MenuItem(
        id=new_item_id(),
        name=name,
        original_name=_text(raw.get("originalName")) or name,
        description=description,
        original_description=_text(raw.get("originalDescription")) or description,
        simplified_description=_text(raw.get("simplifiedDescription")) or description,
        section=_text(raw.get("section")) or section_name,
        price=_text(raw.get("price")) or "0",
        currency=_text(raw.get("currency")) or "$",
        confidence=_confidence(raw.get("confidence")),
        proteins=_str_list(raw.get("proteins")),
        meat_proteins=_str_list(raw.get("meatProteins")),
        meat_types=_vocab_list(raw.get("meatTypes")),
        cooking_methods=_vocab_list(raw.get("cookingMethods")),
        allergens=_str_list(raw.get("allergens")),
        herbs_spices=_str_list(raw.get("herbsSpices")),
        ingredient_translations=_translations(raw.get("ingredientTranslations")),
        dietary_info=_dietary(raw.get("dietaryInfo")),
        image_url="",
        nutrition_estimate=_nutrition(raw.get("nutritionEstimate")),
    )


def parse_menu_response(text: str, target_language: str) -> ProcessedMenu:
    """Turn a model reply into a fully defaulted ProcessedMenu.

    The reply may be wrapped in Markdown fences and surrounded by prose. The
    top-level object must carry a ``sections`` list; everything below it is
    defaulted field by field, and every item gets a fresh unique id here.
    """
    data = extract_json_object(text)
    raw_sections = data.get("sections")
    if not isinstance(raw_sections, list):
        raise ParseError("Invalid response structure: missing sections array", raw_text=text)

    sections: List[MenuSection] = []
    for raw_section in raw_sections:
        if not isinstance(raw_section, dict):
            LOG.debug("Skipping non-object section: %r", raw_section)
            continue
        name = _text(raw_section.get("name")) or DEFAULT_SECTION_NAME
        raw_items = raw_section.get("items")
        items = [
            normalize_item(raw, name)
            for raw in (raw_items if isinstance(raw_items, list) else [])
            if isinstance(raw, dict)
        ]
        sections.append(MenuSection(id=section_id(name), name=name, items=items))

    menu = ProcessedMenu(
        id=f"menu_{uuid.uuid4().hex}",
        original_language=_text(data.get("originalLanguage")) or "unknown",
        target_language=target_language,
        sections=sections,
    )
    LOG.info("Normalized menu: %d section(s), %d item(s)", len(sections), menu.total_items)
    return menu
