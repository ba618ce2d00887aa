from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass

from fastapi import HTTPException, UploadFile, status

from kanban_api.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
  stored_name: str
  size: int
  path: str


def stored_path(stored_name: str) -> str:
  return os.path.join(settings.upload_dir, os.path.basename(stored_name))


async def save_upload(upload: UploadFile, max_bytes: int | None = None) -> StoredFile:
  limit = int(max_bytes if max_bytes is not None else settings.max_attachment_bytes)
  data = await upload.read(limit + 1)
  if len(data) > limit:
    raise HTTPException(status_code=status.HTTP_413_CONTENT_TOO_LARGE, detail="Attachment too large")
  os.makedirs(settings.upload_dir, exist_ok=True)
  ext = os.path.splitext(upload.filename or "")[1]
  stored_name = f"{uuid.uuid4().hex}{ext}"
  out_path = stored_path(stored_name)
  with open(out_path, "wb") as f:
    f.write(data)
  return StoredFile(stored_name=stored_name, size=len(data), path=out_path)


def delete_stored_file(stored_name: str) -> bool:
  """Best effort; a missing or locked file is logged and reported as False."""
  path = stored_path(stored_name)
  try:
    os.remove(path)
  except OSError as e:
    logger.warning("could not remove attachment file %s: %s", path, e)
    return False
  return True
