from __future__ import annotations

_MENU_PROMPT = """
You are an expert menu analyst and translator. Analyze the following menu text and return a structured JSON response.

MENU TEXT:
__MENU_TEXT__

TARGET LANGUAGE: __TARGET_LANGUAGE__

INSTRUCTIONS:
1. Parse the menu into sections and individual items
2. Translate all content to __TARGET_LANGUAGE__ while preserving original text
3. Analyze ingredients, proteins, allergens, and dietary information
4. Provide simplified descriptions and ingredient explanations
5. Estimate nutritional information where possible
6. Assign confidence scores (0-100) based on text clarity
7. Identify meat types and cooking methods for each dish

RETURN ONLY VALID JSON in this exact structure:
{
  "originalLanguage": "detected_language_code",
  "sections": [
    {
      "name": "section_name",
      "items": [
        {
          "name": "translated_dish_name",
          "originalName": "original_dish_name",
          "description": "translated_description",
          "originalDescription": "original_description",
          "simplifiedDescription": "easy_to_understand_explanation",
          "ingredientTranslations": [
            {
              "original": "original_ingredient",
              "translation": "translated_ingredient",
              "explanation": "what_this_ingredient_is"
            }
          ],
          "section": "section_name",
          "price": "price_number_only",
          "currency": "$",
          "confidence": 95,
          "proteins": ["protein1", "protein2"],
          "meatProteins": ["meat1", "meat2"],
          "meatTypes": ["beef", "poultry"],
          "cookingMethods": ["grilled", "sautéed"],
          "allergens": ["allergen1", "allergen2"],
          "herbsSpices": ["herb1", "spice1"],
          "dietaryInfo": {
            "vegetarian": true/false,
            "vegan": true/false,
            "halal": true/false,
            "kosher": true/false,
            "pescatarian": true/false,
            "glutenFree": true/false,
            "dairyFree": true/false,
            "nutFree": true/false
          },
          "nutritionEstimate": {
            "calories": 350,
            "protein": 25,
            "carbs": 30,
            "fat": 15
          }
        }
      ]
    }
  ]
}

IMPORTANT:
- Return ONLY the JSON, no additional text
- Ensure all strings are properly escaped
- Use null for missing prices
- Be conservative with dietary classifications
- Provide realistic nutritional estimates
- Include confidence scores based on text clarity
"""


def build_menu_prompt(menu_text: str, target_language: str) -> str:
    """Prompt asking the model for the full menu schema as bare JSON."""
    return (
        _MENU_PROMPT.replace("__TARGET_LANGUAGE__", target_language)
        .replace("__MENU_TEXT__", menu_text.strip())
    )
