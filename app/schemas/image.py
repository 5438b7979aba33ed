from io import BytesIO
from typing import FrozenSet, Optional

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, model_validator


MIME_BY_FORMAT = {
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def sniff_format(data: bytes) -> str:
    """Image format read from the bytes themselves ("" when unknown)."""
    try:
        with Image.open(BytesIO(data)) as image:
            detected = (image.format or "").lower()
    except UnidentifiedImageError:
        return ""
    return "jpg" if detected == "jpeg" else detected


def _extension(filename: str) -> str:
    ext = filename.rpartition(".")[2].lower() if "." in filename else ""
    return "jpg" if ext == "jpeg" else ext


class ImageUploadValidation(BaseModel):
    """Checks an uploaded file before anything touches the disk.

    The extension, the sniffed format and the declared MIME type must all
    agree and be allowed. ``detected_extension`` is filled on success.
    """

    filename: str
    content_type: Optional[str] = None
    data: bytes
    max_size: int
    allowed_extensions: FrozenSet[str]
    detected_extension: Optional[str] = None

    @model_validator(mode="after")
    def check_upload(self):
        allowed = {_extension(f"x.{ext}") for ext in self.allowed_extensions}

        if not self.data:
            raise ValueError("El archivo está vacío")
        if len(self.data) > self.max_size:
            raise ValueError("El archivo es demasiado grande")
        if _extension(self.filename) not in allowed:
            raise ValueError("Extensión de archivo no permitida")

        detected = sniff_format(self.data)
        if detected not in allowed:
            raise ValueError("El archivo no es una imagen válida")
        if detected != _extension(self.filename):
            raise ValueError("La extensión no coincide con el contenido")

        expected_mime = MIME_BY_FORMAT.get(detected)
        if self.content_type and expected_mime and self.content_type.lower() != expected_mime:
            raise ValueError("Tipo MIME de imagen inválido")

        self.detected_extension = detected
        return self
