"""
Attachment storage for log photos and documents
"""

import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import settings
from utils.structured_logging import get_logger, LogCategory

logger = get_logger("attachments")

ALLOWED_PHOTO_TYPES = {"image/jpeg", "image/png", "image/heic", "image/webp"}
ALLOWED_DOCUMENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "image/jpeg",
    "image/png",
}


def _safe_name(filename: str) -> str:
    name = os.path.basename(filename or "upload")
    return re.sub(r"[^A-Za-z0-9._-]", "_", name) or "upload"


class LocalAttachmentStorage:
    """Stores uploads on local disk under <root>/<owner>/<log>/ and returns a relative uri"""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.ATTACHMENT_DIR)

    def upload(self, owner_id: int, log_id: int, data: bytes, filename: str) -> str:
        directory = self.root / str(owner_id) / str(log_id)
        directory.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.utcnow().strftime("%Y%m%d%H%M%S%f")
        stored_name = f"{timestamp}_{_safe_name(filename)}"
        with open(directory / stored_name, "wb") as buffer:
            buffer.write(data)

        uri = f"{owner_id}/{log_id}/{stored_name}"
        logger.info(
            "Attachment stored",
            category=LogCategory.WORKFLOW,
            user_id=owner_id,
            extra={"log_id": log_id, "uri": uri, "size": len(data)},
        )
        return uri


def get_attachment_storage() -> LocalAttachmentStorage:
    return LocalAttachmentStorage()
