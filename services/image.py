import uuid
import shutil
import logging
from pathlib import Path
from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from core.config import settings
from core.exceptions import ValidationError, ExternalServiceError

logger = logging.getLogger(__name__)

# Constants
URL_PREFIX = "/uploads"
SUBCATEGORY_FOLDER = "subcategories"
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/webp"}


class ImageService:
    """Stores catalog images on local disk below ``settings.UPLOAD_DIR``"""

    @staticmethod
    def upload_root() -> Path:
        return Path(settings.UPLOAD_DIR)

    @staticmethod
    def validate_image_file(file: UploadFile) -> None:
        """Validate uploaded image file"""
        max_size = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
        if file.size and file.size > max_size:
            raise ValidationError(
                f"File size too large. Maximum size allowed is {settings.MAX_UPLOAD_SIZE_MB}MB",
                field="file"
            )

        if file.filename:
            file_ext = Path(file.filename).suffix.lower()
            if file_ext not in ALLOWED_EXTENSIONS:
                raise ValidationError(
                    f"Invalid file type. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
                    field="file"
                )

        if file.content_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                f"Invalid content type. Allowed types: {', '.join(sorted(ALLOWED_MIME_TYPES))}",
                field="file"
            )

    @staticmethod
    def save_subcategory_image(file: UploadFile, subcategory_id: int) -> str:
        """Validate, normalize and store an image. Returns its public URL."""
        ImageService.validate_image_file(file)

        target_dir = ImageService.upload_root() / SUBCATEGORY_FOLDER
        target_dir.mkdir(parents=True, exist_ok=True)

        filename = f"subcategory_{subcategory_id}_{uuid.uuid4().hex}.jpg"
        file_path = target_dir / filename
        temp_path = target_dir / f"temp_{filename}"

        try:
            with open(temp_path, "wb") as buffer:
                shutil.copyfileobj(file.file, buffer)

            with Image.open(temp_path) as img:
                if img.mode in ('RGBA', 'LA', 'P'):
                    img = img.convert('RGB')

                max_side = settings.SUBCATEGORY_IMAGE_MAX_SIZE
                img.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)
                img.save(file_path, format='JPEG', quality=85, optimize=True)

            temp_path.unlink()

            logger.info(f"Stored image for subcategory {subcategory_id}: {filename}")
            return f"{URL_PREFIX}/{SUBCATEGORY_FOLDER}/{filename}"

        except UnidentifiedImageError:
            ImageService._remove_partial(temp_path, file_path)
            logger.warning(f"Rejected upload for subcategory {subcategory_id}: {file.filename} is not a readable image")
            raise ValidationError("Uploaded file is not a valid image", field="file")

        except Exception as e:
            ImageService._remove_partial(temp_path, file_path)
            logger.error(f"Error processing image for subcategory {subcategory_id}: {str(e)}")
            raise ExternalServiceError("image-storage", "Failed to process image")

    @staticmethod
    def _remove_partial(*paths: Path) -> None:
        for path in paths:
            if path.exists():
                path.unlink()

    @staticmethod
    def delete_file(image_url: str) -> bool:
        """Remove a stored image. URLs that point outside the upload folder are ignored."""
        if not image_url or not image_url.startswith(f"{URL_PREFIX}/"):
            return False

        relative = image_url[len(URL_PREFIX) + 1:]
        root = ImageService.upload_root().resolve()
        file_path = (root / relative).resolve()

        if root not in file_path.parents:
            logger.warning(f"Refusing to delete file outside upload folder: {image_url}")
            return False

        if not file_path.exists():
            return False

        file_path.unlink()
        logger.info(f"Deleted image {image_url}")
        return True
