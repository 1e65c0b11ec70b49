import json

import pytest

from menu_lens.errors import ParseError
from menu_lens.orchestrator.normalizer import extract_json_object, parse_menu_response, section_id

from helpers import MENU_JSON, menu_reply


def test_fenced_reply_with_minimal_item_gets_every_default():
    text = '```json\n{"sections":[{"name":"Mains","items":[{"name":"Soup"}]}]}\n```'
    menu = parse_menu_response(text, "English")

    assert menu.original_language == "unknown"
    assert menu.target_language == "English"
    assert menu.id.startswith("menu_")
    [section] = menu.sections
    assert (section.id, section.name) == ("mains", "Mains")
    [item] = section.items
    assert item.id.startswith("item_")
    assert item.name == "Soup"
    assert item.original_name == "Soup"
    assert item.description == item.original_description == item.simplified_description == ""
    assert item.section == "Mains"
    assert (item.price, item.currency, item.confidence) == ("0", "$", 50)
    assert item.proteins == item.meat_types == item.allergens == item.ingredient_translations == []
    assert item.nutrition_estimate is None
    assert item.image_url == ""
    assert item.dietary_info.as_dict() == {
        "vegetarian": False,
        "vegan": False,
        "halal": False,
        "kosher": False,
        "pescatarian": False,
        "glutenFree": False,
        "dairyFree": False,
        "nutFree": False,
    }


def test_dietary_flags_merge_over_defaults_and_values_are_kept():
    menu = parse_menu_response(menu_reply(), "English")
    stew, tart = menu.sections[0].items

    assert stew.original_name == "Boeuf Bourguignon"
    assert (stew.price, stew.currency, stew.confidence) == ("24", "€", 92)
    assert stew.meat_types == ["beef"]
    assert stew.dietary_info.gluten_free is True
    assert stew.dietary_info.vegetarian is False
    assert tart.dietary_info.vegetarian is True
    assert tart.name == "Vegetable Tart"
    assert menu.original_language == "fr"
    assert menu.sections[0].id == "plats-principaux"


def test_prose_around_the_object_is_ignored():
    text = "Sure! Here is your menu:\n" + json.dumps(MENU_JSON) + "\nEnjoy."
    assert parse_menu_response(text, "English").total_items == 2


def test_item_ids_are_unique_across_sections():
    data = {
        "sections": [
            {"name": "A", "items": [{"name": "x"}, {"name": "x"}]},
            {"name": "B", "items": [{"name": "x"}]},
        ]
    }
    menu = parse_menu_response(json.dumps(data), "English")
    ids = [i.id for i in menu.iter_items()]
    assert len(set(ids)) == 3


def test_missing_pieces_fall_back():
    data = {
        "sections": [
            {"items": [{"price": 12.5, "confidence": 0, "nutritionEstimate": {"calories": 300}}]},
            {"name": "Drinks"},
        ]
    }
    menu = parse_menu_response(json.dumps(data), "German")
    item = next(menu.iter_items())
    assert menu.sections[0].name == "Menu"
    assert menu.sections[1].items == []
    assert item.name == "Unknown Item"
    assert item.price == "12.5"
    assert item.confidence == 50
    assert item.nutrition_estimate is None


def test_wire_format_uses_camel_case_keys():
    menu = parse_menu_response(menu_reply(), "English")
    wire = menu.as_dict()
    item = wire["sections"][0]["items"][0]
    assert wire["totalItems"] == 2
    assert {"originalName", "meatTypes", "dietaryInfo", "imageUrl"} <= set(item)


@pytest.mark.parametrize(
    "text",
    [
        "I could not read this menu.",
        "```json\n{ not json }\n```",
        "",
    ],
)
def test_unparseable_replies_raise_parse_error_with_raw_text(text):
    with pytest.raises(ParseError) as info:
        parse_menu_response(text, "English")
    assert info.value.raw_text == text


def test_sections_must_be_a_list():
    with pytest.raises(ParseError, match="sections"):
        parse_menu_response('{"sections": {"name": "oops"}}', "English")


def test_extract_json_object_slices_outer_braces():
    assert extract_json_object('```\n{"a": {"b": 1}}\n```') == {"a": {"b": 1}}


def test_section_id_collapses_whitespace():
    assert section_id("Hot  Drinks\tand Tea") == "hot-drinks-and-tea"
