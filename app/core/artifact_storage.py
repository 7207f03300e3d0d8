"""Artifact storage: file naming, output paths and staged writes.

Every artifact is written to a temporary name inside the uploads directory
and only renamed to its final name once complete, so a half-written file
is never visible at a download path.
"""

import os
import random
import re
import secrets
import time
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterator
from urllib.parse import quote

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.schemas_export import ExportArtifact, FormatDescriptor, PreservationLevel

logger = get_logger(__name__)

MAX_BASE_NAME_CHARS = 48
_UNSAFE_CHARS_RE = re.compile(r"[^\w\s\-]", re.UNICODE)
_WHITESPACE_RE = re.compile(r"\s+")


def uploads_dir() -> Path:
    path = Path(get_settings().UPLOADS_DIR).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def sanitize_title(title: str | None, fallback: str | None = None) -> str:
    """Title-case a title and strip characters unsafe in file names."""
    fallback = fallback or get_settings().DEFAULT_EXPORT_TITLE
    cleaned = _UNSAFE_CHARS_RE.sub(" ", title or "").replace("_", " ")
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    if not cleaned:
        return fallback
    words = [w[:1].upper() + w[1:].lower() if not w.isupper() else w for w in cleaned.split(" ")]
    base = " ".join(words)[:MAX_BASE_NAME_CHARS].strip()
    return base or fallback


def make_file_name(title: str | None, descriptor: FormatDescriptor, today: date | None = None) -> str:
    """Build ``"<Title> - YYYY-MM-DD - NNNNN.<ext>"``."""
    base = sanitize_title(title)
    stamp = (today or date.today()).isoformat()
    suffix = f"{random.randint(0, 99999):05d}"
    return f"{base} - {stamp} - {suffix}.{descriptor.file_extension}"


def derive_output_path(source_path: str | Path, descriptor: FormatDescriptor) -> Path:
    """Output path for a modified copy: never the source, never an existing file."""
    source = Path(source_path)
    name = source.name
    ext = f".{descriptor.file_extension}"
    stem = name[: -len(ext)] if name.lower().endswith(ext) else source.stem
    stem = re.sub(r"_modified-\d+-[0-9a-f]+$", "", stem)
    directory = uploads_dir()
    while True:
        candidate = directory / f"{stem}_modified-{int(time.time())}-{secrets.token_hex(3)}{ext}"
        if not candidate.exists() and candidate.resolve() != source.resolve():
            return candidate


def store_upload(data: bytes, original_name: str | None, descriptor: FormatDescriptor) -> Path:
    """Save an uploaded source file under ``incoming/`` (not served for download)."""
    incoming = uploads_dir() / "incoming"
    incoming.mkdir(parents=True, exist_ok=True)
    name = Path(original_name or "upload").name
    ext = f".{descriptor.file_extension}"
    stem = name[: -len(ext)] if name.lower().endswith(ext) else Path(name).stem
    stem = _UNSAFE_CHARS_RE.sub("_", stem).strip("_ ") or "upload"
    path = incoming / f"{stem}-{secrets.token_hex(4)}{ext}"
    with staged_output(path) as tmp_path:
        tmp_path.write_bytes(data)
    return path


def upload_title(path: str | Path) -> str:
    """Title for an upload saved by store_upload, without its random suffix."""
    return re.sub(r"-[0-9a-f]{8}$", "", Path(path).stem)


def download_url(file_name: str) -> str:
    base = get_settings().PUBLIC_BASE_URL.rstrip("/")
    return f"{base}/uploads/{quote(file_name)}"


def build_artifact(
    path: Path,
    descriptor: FormatDescriptor,
    preservation: PreservationLevel,
    notes: list[str] | None = None,
) -> ExportArtifact:
    path = Path(path)
    return ExportArtifact(
        output_path=str(path),
        file_name=path.name,
        format=descriptor.id,
        preservation_level=preservation,
        label=descriptor.display_label,
        download_url=download_url(path.name),
        notes=list(notes or []),
    )


@contextmanager
def staged_output(final_path: Path) -> Iterator[Path]:
    """
    Yield a temporary path beside ``final_path``; rename on success.

    On any exception (including cancellation) the temporary file is removed
    and ``final_path`` is left untouched.
    """
    final_path = Path(final_path)
    # Keep the real extension last: pandoc and Chromium infer output type from it
    tmp_path = final_path.with_name(f".part-{secrets.token_hex(4)}-{final_path.name}")
    try:
        yield tmp_path
        if not tmp_path.exists():
            raise FileNotFoundError(f"Staged output was not written: {tmp_path.name}")
        os.replace(tmp_path, final_path)
    except BaseException:
        discard(tmp_path)
        raise


def discard(path: Path | str | None) -> None:
    """Remove a file if present, logging instead of raising."""
    if not path:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove partial file {path}: {e}")
