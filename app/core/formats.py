"""Format registry: the single table of every supported file format.

Every other component (intent rules, extractors, appliers, renderers,
the API) looks formats up here; nothing else hard-codes extensions.
"""

from pathlib import Path

from app.core.export_errors import UnknownFormat
from app.core.schemas_export import FormatDescriptor, RenderFamily, Strategy

S = Strategy
R = RenderFamily

# id, extension, label, strategy, render family, mime, pandoc writer, pandoc args
_FORMAT_TABLE: list[tuple] = [
    # Documents
    ("docx", "docx", "Word Document", S.DIRECT_BINARY, R.PANDOC,
     "application/vnd.openxmlformats-officedocument.wordprocessingml.document", "docx", ()),
    ("doc", "doc", "Word 97-2003 Document", S.NOT_MODIFIABLE, R.PANDOC,
     "application/msword", "docx", ()),
    ("pdf", "pdf", "PDF Document", S.EXTRACT_MODIFY_EXPORT, R.PANDOC,
     "application/pdf", "pdf", ()),
    ("odt", "odt", "OpenDocument Text", S.EXTRACT_MODIFY_EXPORT, R.PANDOC,
     "application/vnd.oasis.opendocument.text", "odt", ()),
    ("rtf", "rtf", "Rich Text Format", S.TEXT_BASED, R.PANDOC,
     "application/rtf", "rtf", ("-s",)),
    # Presentations
    ("pptx", "pptx", "PowerPoint Presentation", S.EXTRACT_MODIFY_EXPORT, R.PANDOC,
     "application/vnd.openxmlformats-officedocument.presentationml.presentation", "pptx", ()),
    ("ppt", "ppt", "PowerPoint 97-2003 Presentation", S.NOT_MODIFIABLE, R.PANDOC,
     "application/vnd.ms-powerpoint", "pptx", ()),
    ("odp", "odp", "OpenDocument Presentation", S.NOT_MODIFIABLE, R.PANDOC,
     "application/vnd.oasis.opendocument.presentation", "pptx", ()),
    # Spreadsheets
    ("xlsx", "xlsx", "Excel Workbook", S.TABULAR, R.SPREADSHEET,
     "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", None, ()),
    ("xls", "xls", "Excel 97-2003 Workbook", S.NOT_MODIFIABLE, R.SPREADSHEET,
     "application/vnd.ms-excel", None, ()),
    ("ods", "ods", "OpenDocument Spreadsheet", S.NOT_MODIFIABLE, R.SPREADSHEET,
     "application/vnd.oasis.opendocument.spreadsheet", None, ()),
    ("csv", "csv", "CSV File", S.TABULAR, R.SPREADSHEET, "text/csv", None, ()),
    ("tsv", "tsv", "TSV File", S.TABULAR, R.SPREADSHEET, "text/tab-separated-values", None, ()),
    # Text and markup
    ("txt", "txt", "Text File", S.TEXT_BASED, R.MARKUP, "text/plain", None, ()),
    ("md", "md", "Markdown File", S.TEXT_BASED, R.MARKUP, "text/markdown", None, ()),
    ("html", "html", "HTML Page", S.TEXT_BASED, R.MARKUP, "text/html", None, ()),
    ("xml", "xml", "XML File", S.TEXT_BASED, R.MARKUP, "application/xml", None, ()),
    # Calendar, contact and mail envelopes
    ("ics", "ics", "Calendar Event", S.TEXT_BASED, R.ENVELOPE, "text/calendar", None, ()),
    ("vcf", "vcf", "Contact Card", S.TEXT_BASED, R.ENVELOPE, "text/vcard", None, ()),
    ("eml", "eml", "Email Message", S.TEXT_BASED, R.ENVELOPE, "message/rfc822", None, ()),
    ("msg", "msg", "Outlook Message", S.NOT_MODIFIABLE, R.ENVELOPE,
     "application/vnd.ms-outlook", None, ()),
    ("mbox", "mbox", "Mailbox", S.TEXT_BASED, R.ENVELOPE, "application/mbox", None, ()),
    # Images
    ("jpg", "jpg", "JPEG Image", S.IMAGE_ONLY, R.IMAGE, "image/jpeg", None, ()),
    ("png", "png", "PNG Image", S.IMAGE_ONLY, R.IMAGE, "image/png", None, ()),
    ("bmp", "bmp", "Bitmap Image", S.IMAGE_ONLY, R.IMAGE, "image/bmp", None, ()),
    ("tiff", "tiff", "TIFF Image", S.IMAGE_ONLY, R.IMAGE, "image/tiff", None, ()),
    ("gif", "gif", "GIF Image", S.IMAGE_ONLY, R.IMAGE, "image/gif", None, ()),
    # Archives
    ("zip", "zip", "ZIP Archive", S.ARCHIVE_ONLY, R.ARCHIVE, "application/zip", None, ()),
    ("rar", "rar", "RAR Archive", S.ARCHIVE_ONLY, R.ARCHIVE, "application/vnd.rar", None, ()),
    ("7z", "7z", "7-Zip Archive", S.ARCHIVE_ONLY, R.ARCHIVE, "application/x-7z-compressed", None, ()),
    ("tar.gz", "tar.gz", "Gzipped Tarball", S.ARCHIVE_ONLY, R.ARCHIVE, "application/gzip", None, ()),
    # Media (placeholder only)
    ("mp3", "mp3", "MP3 Audio", S.NOT_MODIFIABLE, R.NONE, "audio/mpeg", None, ()),
    ("mp4", "mp4", "MP4 Video", S.NOT_MODIFIABLE, R.NONE, "video/mp4", None, ()),
    ("wav", "wav", "WAV Audio", S.NOT_MODIFIABLE, R.NONE, "audio/wav", None, ()),
]

FORMATS: dict[str, FormatDescriptor] = {
    row[0]: FormatDescriptor(
        id=row[0],
        file_extension=row[1],
        display_label=row[2],
        strategy=row[3],
        render_family=row[4],
        mime_type=row[5],
        pandoc_writer=row[6],
        pandoc_args=row[7],
    )
    for row in _FORMAT_TABLE
}

ALIASES: dict[str, str] = {
    "word": "docx",
    "excel": "xlsx",
    "powerpoint": "pptx",
    "markdown": "md",
    "htm": "html",
    "jpeg": "jpg",
    "tif": "tiff",
    "text": "txt",
    "tgz": "tar.gz",
    "ical": "ics",
    "vcard": "vcf",
}


def normalize_format_id(format_id: str) -> str:
    """Lowercase, trim, drop a leading dot and resolve aliases."""
    key = str(format_id or "").strip().lower().lstrip(".")
    return ALIASES.get(key, key)


def describe(format_id: str) -> FormatDescriptor:
    """Look up a format, case- and dot-insensitively.

    Raises:
        UnknownFormat: If the id (or alias) is not registered
    """
    descriptor = FORMATS.get(normalize_format_id(format_id))
    if descriptor is None:
        raise UnknownFormat(format_id)
    return descriptor


def is_registered(format_id: str) -> bool:
    return normalize_format_id(format_id) in FORMATS


def list_by_strategy(strategy: Strategy) -> set[FormatDescriptor]:
    return {d for d in FORMATS.values() if d.strategy == strategy}


def list_formats(exportable_only: bool = False) -> list[FormatDescriptor]:
    descriptors = list(FORMATS.values())
    if exportable_only:
        descriptors = [d for d in descriptors if d.exportable]
    return descriptors


def format_for_path(path: str | Path) -> FormatDescriptor:
    """Resolve a file's format from its name, handling ``.tar.gz``.

    Raises:
        UnknownFormat: If the extension is not registered
    """
    name = Path(path).name.lower()
    if name.endswith(".tar.gz"):
        return FORMATS["tar.gz"]
    suffix = Path(name).suffix
    if not suffix:
        raise UnknownFormat(name)
    return describe(suffix)
