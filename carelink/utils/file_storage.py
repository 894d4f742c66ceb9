# carelink/utils/file_storage.py
import uuid
from pathlib import Path, PurePath

from carelink.core.config import get_settings

settings = get_settings()


class StoragePathError(ValueError):
    pass


def get_storage_root() -> Path:
    """
    Returns the absolute path to the file storage root directory.

    By default, this is "<cwd>/uploads", but it can be overridden
    via FILE_STORAGE_ROOT or file_storage_root in settings.
    """
    root = Path(settings.file_storage_root)
    if not root.is_absolute():
        root = Path.cwd() / root
    root.mkdir(parents=True, exist_ok=True)
    return root.resolve()


def safe_file_name(original_filename: str | None) -> str:
    """
    Strip any directory part (either separator style) and characters
    that do not belong in a storage key.
    """
    name = PurePath((original_filename or "").replace("\\", "/")).name
    cleaned = "".join(ch if ch.isalnum() or ch in "._- " else "_" for ch in name).strip(" .")
    return cleaned or "file"


def build_document_path(
    patient_id: str,
    consultation_id: str,
    timestamp_ms: int,
    original_filename: str | None,
    file_id: str | None = None,
) -> str:
    """
    The only sanctioned layout for consultation documents:
    <patient_id>/<consultation_id>/<timestamp>-<file id>-<file name>

    The file id keeps same-name uploads within one millisecond apart.
    """
    file_id = file_id or uuid.uuid4().hex[:12]
    return f"{patient_id}/{consultation_id}/{timestamp_ms}-{file_id}-{safe_file_name(original_filename)}"


def resolve_storage_path(storage_path: str) -> Path:
    """
    Convert a relative storage path (stored in DB) into an absolute filesystem path.

    Raises StoragePathError if the path would escape the storage root.
    """
    storage_root = get_storage_root()
    full_path = (storage_root / storage_path).resolve()
    if storage_root != full_path and storage_root not in full_path.parents:
        raise StoragePathError(f"Storage path escapes storage root: {storage_path!r}")
    return full_path


def save_bytes_to_storage(data: bytes, storage_path: str) -> str:
    """
    Save a blob of bytes at a relative storage path.

    Returns the relative path which can be stored in the database.
    Stored blobs are immutable: an existing file raises FileExistsError.
    """
    full_path = resolve_storage_path(storage_path)
    full_path.parent.mkdir(parents=True, exist_ok=True)

    with open(full_path, "xb") as f:
        f.write(data)

    return storage_path
