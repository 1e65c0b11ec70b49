from __future__ import annotations

import base64
import hashlib
import mimetypes
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .constants import DIETARY_FLAGS


# ---------- providers & progress ----------


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static facts about one provider: identity and capabilities."""

    id: str
    name: str
    requires_api_key: bool
    supported_formats: Tuple[str, ...] = ()
    max_file_size: Optional[int] = None
    average_processing_ms: int = 0
    accuracy: str = "medium"
    offline: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "requires_api_key": self.requires_api_key,
            "supported_formats": list(self.supported_formats),
            "max_file_size": self.max_file_size,
            "average_processing_ms": self.average_processing_ms,
            "accuracy": self.accuracy,
            "offline": self.offline,
        }


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    progress: int
    message: str
    provider: Optional[str] = None
    estimated_remaining_ms: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"stage": self.stage, "progress": self.progress, "message": self.message}
        if self.provider is not None:
            out["provider"] = self.provider
        if self.estimated_remaining_ms is not None:
            out["estimated_remaining_ms"] = self.estimated_remaining_ms
        return out


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    confidence: float
    elapsed_ms: int
    provider: str


@dataclass(frozen=True)
class GenerationResult:
    content: str
    elapsed_ms: int
    provider: str
    model: Optional[str] = None
    usage: Optional[Dict[str, int]] = None


@dataclass(frozen=True)
class AttemptFailure:
    provider: str
    message: str
    retryable: bool = True


# ---------- image payload ----------

_MAGIC: Tuple[Tuple[bytes, str], ...] = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
    (b"%PDF", "application/pdf"),
)


def sniff_mime_type(data: bytes, filename: Optional[str] = None) -> Optional[str]:
    """Guess the MIME type from magic bytes, then from the filename."""
    head = data[:16]
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    for magic, mime in _MAGIC:
        if head.startswith(magic):
            return mime
    if filename:
        mime, _ = mimetypes.guess_type(filename)
        return mime
    return None


@dataclass(frozen=True)
class ImagePayload:
    """An uploaded menu image (or PDF) plus the facts providers check against."""

    data: bytes = field(repr=False)
    filename: Optional[str]
    mime_type: Optional[str]
    byte_size: int
    sha256: str

    @classmethod
    def from_bytes(
        cls, data: bytes, filename: Optional[str] = None, mime_type: Optional[str] = None
    ) -> "ImagePayload":
        return cls(
            data=data,
            filename=filename,
            mime_type=mime_type or sniff_mime_type(data, filename),
            byte_size=len(data),
            sha256=hashlib.sha256(data).hexdigest(),
        )

    @classmethod
    def from_path(cls, path: str) -> "ImagePayload":
        with open(path, "rb") as f:
            data = f.read()
        return cls.from_bytes(data, filename=os.path.basename(path))

    @property
    def format(self) -> Optional[str]:
        """Short format name: ``jpeg``, ``png``, ``pdf`` ..."""
        if not self.mime_type or "/" not in self.mime_type:
            return None
        return self.mime_type.split("/", 1)[1].lower()

    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "mime_type": self.mime_type,
            "byte_size": self.byte_size,
            "sha256": self.sha256,
        }


# ---------- menu ----------


@dataclass(frozen=True)
class DietaryInfo:
    vegetarian: bool = False
    vegan: bool = False
    halal: bool = False
    kosher: bool = False
    pescatarian: bool = False
    gluten_free: bool = False
    dairy_free: bool = False
    nut_free: bool = False

    def as_dict(self) -> Dict[str, bool]:
        values = (
            self.vegetarian,
            self.vegan,
            self.halal,
            self.kosher,
            self.pescatarian,
            self.gluten_free,
            self.dairy_free,
            self.nut_free,
        )
        return dict(zip(DIETARY_FLAGS, values))


@dataclass(frozen=True)
class IngredientTranslation:
    original: str
    translation: str
    explanation: str = ""

    def as_dict(self) -> Dict[str, str]:
        return {"original": self.original, "translation": self.translation, "explanation": self.explanation}


@dataclass(frozen=True)
class NutritionEstimate:
    calories: float
    protein: float
    carbs: float
    fat: float

    def as_dict(self) -> Dict[str, float]:
        return {"calories": self.calories, "protein": self.protein, "carbs": self.carbs, "fat": self.fat}


@dataclass
class MenuItem:
    """A fully defaulted menu item. Only the response normalizer builds these."""

    id: str
    name: str
    original_name: str
    description: str
    original_description: str
    simplified_description: str
    section: str
    price: str
    currency: str
    confidence: float
    proteins: List[str]
    meat_proteins: List[str]
    meat_types: List[str]
    cooking_methods: List[str]
    allergens: List[str]
    herbs_spices: List[str]
    ingredient_translations: List[IngredientTranslation]
    dietary_info: DietaryInfo
    image_url: str = ""
    nutrition_estimate: Optional[NutritionEstimate] = None

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "originalName": self.original_name,
            "description": self.description,
            "originalDescription": self.original_description,
            "simplifiedDescription": self.simplified_description,
            "ingredientTranslations": [t.as_dict() for t in self.ingredient_translations],
            "section": self.section,
            "price": self.price,
            "currency": self.currency,
            "confidence": self.confidence,
            "proteins": list(self.proteins),
            "meatProteins": list(self.meat_proteins),
            "meatTypes": list(self.meat_types),
            "cookingMethods": list(self.cooking_methods),
            "allergens": list(self.allergens),
            "herbsSpices": list(self.herbs_spices),
            "dietaryInfo": self.dietary_info.as_dict(),
            "imageUrl": self.image_url,
        }
        if self.nutrition_estimate is not None:
            out["nutritionEstimate"] = self.nutrition_estimate.as_dict()
        return out


@dataclass
class MenuSection:
    id: str
    name: str
    items: List[MenuItem] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "items": [i.as_dict() for i in self.items]}


@dataclass
class ProcessedMenu:
    id: str
    original_language: str
    target_language: str
    sections: List[MenuSection]
    processing_time_ms: int = 0
    ocr_provider: Optional[str] = None
    ocr_confidence: Optional[float] = None
    llm_provider: Optional[str] = None

    @property
    def total_items(self) -> int:
        return sum(len(s.items) for s in self.sections)

    def iter_items(self) -> Iterator[MenuItem]:
        for section in self.sections:
            yield from section.items

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "originalLanguage": self.original_language,
            "targetLanguage": self.target_language,
            "sections": [s.as_dict() for s in self.sections],
            "processingTime": self.processing_time_ms,
            "totalItems": self.total_items,
        }
        if self.ocr_provider is not None:
            out["ocrProvider"] = self.ocr_provider
        if self.ocr_confidence is not None:
            out["ocrConfidence"] = self.ocr_confidence
        if self.llm_provider is not None:
            out["llmProvider"] = self.llm_provider
        return out
