"""
Payment Proof Storage
Saves uploaded payment screenshots under UPLOAD_DIR (served at /uploads)
"""
import logging
import os
import uuid

from app.config import settings
from app.core.exceptions import TransientError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp", "heic"}


class PaymentProofStorage:
    """Stores payment screenshots keyed by receipt number"""

    def __init__(self, upload_dir: str = None, folder: str = None, base_url: str = None):
        self.upload_dir = upload_dir or settings.UPLOAD_DIR
        self.folder = folder or settings.PAYMENT_PROOF_FOLDER
        self.base_url = (base_url or settings.PUBLIC_BASE_URL).rstrip("/")

    def _extension(self, filename: str, content_type: str = None) -> str:
        ext = filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else ""
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError("Payment screenshot must be an image (png, jpg, gif, webp)")
        if content_type and not content_type.startswith("image/"):
            raise ValidationError("Payment screenshot must be an image")
        return ext

    def validate(self, content: bytes, filename: str, content_type: str = None) -> str:
        if not content:
            raise ValidationError("Please upload payment screenshot")
        if len(content) > settings.MAX_UPLOAD_SIZE:
            raise ValidationError(
                f"Payment screenshot is too large (max {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB)"
            )
        return self._extension(filename, content_type)

    def save(self, content: bytes, filename: str, receipt_number: str,
             content_type: str = None, replacement: bool = False) -> str:
        """
        Write the image and return its public URL.
        Replacements get a fresh ``<receipt>_updated_<id>.<ext>`` name, so the file
        behind a stored URL is never overwritten.
        """
        ext = self.validate(content, filename, content_type)
        suffix = f"_updated_{uuid.uuid4().hex[:12]}" if replacement else ""
        file_name = f"{receipt_number}{suffix}.{ext}"
        relative_path = f"{self.folder}/{file_name}"
        target_dir = os.path.join(self.upload_dir, self.folder)

        try:
            os.makedirs(target_dir, exist_ok=True)
            with open(os.path.join(target_dir, file_name), "wb") as buffer:
                buffer.write(content)
        except OSError as e:
            logger.error("Failed to store payment proof %s: %s", relative_path, e)
            raise TransientError("Could not save payment screenshot, please try again")

        logger.info("Stored payment proof %s (%d bytes)", relative_path, len(content))
        return f"{self.base_url}/uploads/{relative_path}"


def get_storage() -> PaymentProofStorage:
    return PaymentProofStorage()
