"""
Formas aceitas de resposta do proxy de imagem

Ordem de tentativa:
  1. {"generatedImages": [{"image": {"imageBytes": "<base64>"}}]}
  2. {"imageBase64": "<base64>"}
  3. {"dataUrl": "data:image/jpeg;base64,..."}
"""

from typing import Any, List, Union

from pydantic import BaseModel, Field, ValidationError as SchemaError, field_validator

from services.exceptions import UnsupportedShapeError


class ImageBytes(BaseModel):
    imageBytes: str = Field(..., min_length=1)


class GeneratedImage(BaseModel):
    image: ImageBytes


class GeneratedImagesShape(BaseModel):
    # Só o primeiro item conta; os seguintes podem ser entradas filtradas (raiFilteredReason)
    generatedImages: List[Any] = Field(..., min_length=1)

    @field_validator("generatedImages")
    @classmethod
    def first_image_has_bytes(cls, value: List[Any]) -> List[Any]:
        try:
            GeneratedImage.model_validate(value[0])
        except SchemaError as e:
            raise ValueError(f"primeira imagem inválida: {e.error_count()} erro(s)") from e
        return value

    def to_url(self, mime_type: str) -> str:
        first = GeneratedImage.model_validate(self.generatedImages[0])
        return f"data:{mime_type};base64,{first.image.imageBytes}"


class FlatBase64Shape(BaseModel):
    imageBase64: str = Field(..., min_length=1)

    def to_url(self, mime_type: str) -> str:
        return f"data:{mime_type};base64,{self.imageBase64}"


class DataUrlShape(BaseModel):
    dataUrl: str = Field(..., min_length=1)

    def to_url(self, mime_type: str) -> str:
        return self.dataUrl


ImageShape = Union[GeneratedImagesShape, FlatBase64Shape, DataUrlShape]

SHAPE_ORDER = (GeneratedImagesShape, FlatBase64Shape, DataUrlShape)


def match_image_shape(body: Any) -> ImageShape:
    """Primeira forma que valida; UnsupportedShapeError se nenhuma"""
    for shape in SHAPE_ORDER:
        try:
            return shape.model_validate(body)
        except SchemaError:
            continue

    keys = sorted(body.keys()) if isinstance(body, dict) else []
    raise UnsupportedShapeError(keys)


def resolve_image_url(body: Any, mime_type: str = "image/jpeg") -> str:
    return match_image_shape(body).to_url(mime_type)
