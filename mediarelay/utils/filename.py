import re
import unicodedata
from urllib.parse import quote

from mediarelay.utils.hash import hash_stable


def sanitize_filename(name: str, max_length: int = 200) -> str:
    """
    Reduce a title to word characters, spaces and hyphens so it can sit
    inside a quoted Content-Disposition filename.
    """
    name = unicodedata.normalize("NFKC", name)
    name = re.sub(r"[^\w\s-]", "", name)
    name = re.sub(r"\s+", " ", name)

    windows_reserved = {
        'CON', 'PRN', 'AUX', 'NUL',
        'COM1', 'COM2', 'COM3', 'COM4', 'COM5', 'COM6', 'COM7', 'COM8', 'COM9',
        'LPT1', 'LPT2', 'LPT3', 'LPT4', 'LPT5', 'LPT6', 'LPT7', 'LPT8', 'LPT9'
    }
    if name.strip().upper() in windows_reserved:
        name = f"_{name.strip()}"

    return name[:max_length].strip()


def download_filename(title: str, ext: str, source_url: str) -> str:
    """'<title>.<ext>', or a stable hash of the source when the title is empty"""
    stem = sanitize_filename(title or "")
    if not stem:
        stem = f"video_{hash_stable(source_url)[:8]}"
    return f"{stem}.{ext}"


def content_disposition(filename: str) -> str:
    """
    Attachment header with an ASCII fallback name plus the RFC 5987 UTF-8
    form, since header values must stay latin-1 encodable.
    """
    stem, _, ext = filename.rpartition(".")
    ascii_stem = stem.encode("ascii", "ignore").decode().strip() or "video"
    return (
        f'attachment; filename="{ascii_stem}.{ext}"; '
        f"filename*=UTF-8''{quote(filename)}"
    )
