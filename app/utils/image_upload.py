import os
import secrets
from io import BytesIO

import structlog
from fastapi import UploadFile, HTTPException
from PIL import Image
from pydantic import ValidationError

from app.core.config import settings
from app.schemas.image import ImageUploadValidation

logger = structlog.get_logger()

MAX_PIXELS = 40_000_000
PILLOW_FORMATS = {"jpg": "JPEG", "png": "PNG", "webp": "WEBP"}


def validate_image_upload(file: UploadFile) -> tuple[bytes, str]:
    """Validate image upload and return raw bytes plus normalized extension."""
    filename = getattr(file, "filename", "") or ""
    max_size = settings.MAX_UPLOAD_SIZE
    file.file.seek(0)
    try:
        data = file.file.read(max_size + 1)
        try:
            validated = ImageUploadValidation.model_validate(
                {
                    "filename": filename,
                    "content_type": getattr(file, "content_type", None),
                    "data": data,
                    "max_size": max_size,
                    "allowed_extensions": set(settings.ALLOWED_EXTENSIONS),
                }
            )
        except ValidationError as exc:
            error_message = exc.errors()[0].get("msg", "Imagen inválida")
            raise HTTPException(status_code=400, detail=error_message.removeprefix("Value error, ")) from exc

        return validated.data, validated.detected_extension or ""
    finally:
        file.file.seek(0)


def save_upload(file: UploadFile, directory: str) -> str:
    """Validate and store an uploaded image; return the stored filename.

    The client filename is never trusted: files are renamed to a random
    hex name keeping only the detected extension.
    """
    data, file_extension = validate_image_upload(file)

    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()  # will raise if broken
            width, height = img.size
    except Exception as exc:
        logger.warning("invalid_image_upload", error=str(exc))
        raise HTTPException(status_code=400, detail="El archivo no es una imagen válida") from exc

    # Prevent decompression bomb by limiting pixel count
    if width * height > MAX_PIXELS:
        raise HTTPException(status_code=400, detail="La imagen es demasiado grande")

    os.makedirs(directory, exist_ok=True)

    filename = f"{secrets.token_hex(16)}.{file_extension}"
    file_path = os.path.join(directory, filename)
    with open(file_path, "wb") as out:
        out.write(data)

    try:
        optimize_image(file_path, file_extension)
    except OSError:
        logger.exception("image_optimization_failed", path=file_path)

    logger.info("image_saved", path=file_path)
    return filename


def optimize_image(file_path: str, extension: str, max_width: int = 1600, quality: int = 85):
    """Downscale wide images in place, keeping their format."""
    with Image.open(file_path) as img:
        if img.width <= max_width:
            return
        ratio = max_width / img.width
        resized = img.resize((max_width, int(img.height * ratio)), Image.LANCZOS)
    image_format = PILLOW_FORMATS.get(extension, "JPEG")
    if image_format == "JPEG" and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")
    resized.save(file_path, image_format, quality=quality, optimize=True)


def delete_upload(directory: str, filename: str) -> None:
    """Remove a stored upload; a missing file is only logged."""
    if not filename:
        return
    path = os.path.join(directory, os.path.basename(filename))
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("upload_missing_on_delete", path=path)
    except OSError:
        logger.exception("upload_delete_failed", path=path)
