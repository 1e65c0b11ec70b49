"""Closed vocabularies used across the pipeline."""

from typing import Tuple

# Text recognition providers
OCR_TESSERACT = "tesseract"
OCR_GOOGLE_VISION = "google-vision"
OCR_SPACE = "ocr-space"
RECOGNITION_PROVIDER_IDS: Tuple[str, ...] = (OCR_TESSERACT, OCR_GOOGLE_VISION, OCR_SPACE)

# Generation providers
LLM_OPENAI = "openai"
LLM_GOOGLE = "google"
LLM_GROQ = "groq"
LLM_ANTHROPIC = "anthropic"
LLM_OLLAMA = "ollama"
GENERATION_PROVIDER_IDS: Tuple[str, ...] = (LLM_OPENAI, LLM_GOOGLE, LLM_GROQ, LLM_ANTHROPIC, LLM_OLLAMA)

# Recognition stages
STAGE_PREPROCESSING = "preprocessing"
STAGE_UPLOADING = "uploading"
STAGE_PROCESSING = "processing"
STAGE_POSTPROCESSING = "postprocessing"
# Generation stages
STAGE_INITIALIZING = "initializing"
STAGE_PARSING = "parsing"
# Menu flow stages
STAGE_OCR = "ocr"
STAGE_GENERATING_IMAGES = "generating-images"
# Terminal
STAGE_COMPLETE = "complete"
STAGE_ERROR = "error"

ACCURACY_TIERS: Tuple[str, ...] = ("high", "medium", "low")

SUPPORTED_IMAGE_FORMATS: Tuple[str, ...] = ("jpeg", "png", "webp", "gif", "bmp", "tiff")

MEAT_TYPES: Tuple[str, ...] = ("beef", "pork", "lamb", "poultry", "seafood", "vegetarian", "vegan")

COOKING_METHODS: Tuple[str, ...] = (
    "grilled",
    "fried",
    "steamed",
    "baked",
    "raw",
    "sautéed",
    "roasted",
    "braised",
    "boiled",
    "smoked",
    "barbecued",
)

DIETARY_FLAGS: Tuple[str, ...] = (
    "vegetarian",
    "vegan",
    "halal",
    "kosher",
    "pescatarian",
    "glutenFree",
    "dairyFree",
    "nutFree",
)
