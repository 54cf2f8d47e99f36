"""
Markup handling for rich-text cells exported by CRM/ATS systems.

Odoo and similar tools export notes as HTML fragments. These helpers turn
them into plain text, keep link targets readable, and pull out the Google
Drive and upload-host links that identify a candidate's documents.
"""
import re
from dataclasses import dataclass
from typing import Optional

DRIVE_FOLDER_URL = "https://drive.google.com/drive/folders/{id}"
DRIVE_FILE_URL = "https://drive.google.com/file/d/{id}/view"

MIN_DRIVE_ID_LENGTH = 10

_BASIC_ENTITIES = [
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&apos;", "'"),
]
_EXTRA_ENTITIES = [
    ("&#x27;", "'"),
    ("&#x2F;", "/"),
]

_TAG = re.compile(r"<[^>]*>")
_ANCHOR = re.compile(r"""<a\s+[^>]*href\s*=\s*["']([^"']+)["'][^>]*>([^<]*)</a>""", re.IGNORECASE)
_BLOCK_BOUNDARY = re.compile(r"<br\s*/?>|</?p[^>]*>|</?div[^>]*>", re.IGNORECASE)
_HORIZONTAL_SPACE = re.compile(r"[^\S\n]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")

_HREF_PATTERNS = [
    re.compile(r"""href\s*=\s*["']([^"']*drive\.google\.com[^"']*)["']""", re.IGNORECASE),
    re.compile(r"""href\s*=\s*([^\s>]*drive\.google\.com[^\s>]*)""", re.IGNORECASE),
]
_TEXT_PATTERNS = [
    re.compile(r"""https?://drive\.google\.com/drive/folders/[^\s<>"']*""", re.IGNORECASE),
    re.compile(r"""https?://drive\.google\.com/folders/[^\s<>"']*""", re.IGNORECASE),
    re.compile(r"""https?://drive\.google\.com/file/d/[^\s<>"']*""", re.IGNORECASE),
]
_FOLDER_ID = re.compile(r"/folders/([a-zA-Z0-9_-]+)")
_FILE_ID = re.compile(r"/file/d/([a-zA-Z0-9_-]+)")
_VALID_FOLDER_URL = re.compile(r"/drive/folders/([a-zA-Z0-9_-]+)(?:/|$|\?|#)")
_VALID_FILE_URL = re.compile(r"/file/d/([a-zA-Z0-9_-]+)(?:/|$|\?|#)")
_NESTED_URL = re.compile(r"/(?:drive/folders|file/d)/https?://")
_UPLOAD_URL = re.compile(r"""https?://[^\s<>"']*/wp-content/uploads/[^\s<>"']*""", re.IGNORECASE)


def _decode_entities(text: str, extra: bool = False) -> str:
    for entity, replacement in _BASIC_ENTITIES + (_EXTRA_ENTITIES if extra else []):
        text = text.replace(entity, replacement)
    return text


def strip_html(html: Optional[str]) -> str:
    """Decode common entities, drop every tag and collapse whitespace."""
    if not html:
        return ""
    text = _TAG.sub("", _decode_entities(html))
    return re.sub(r"\s+", " ", text).strip()


def _rewrite_anchor(match: re.Match) -> str:
    url = match.group(1).strip()
    label = match.group(2).strip()
    if not label or label == url:
        return url
    return f"{url} {label}"


def strip_html_preserving_urls(html: Optional[str]) -> str:
    """
    Convert an HTML fragment to plain text without losing link targets.

    ``<a href="URL">text</a>`` becomes ``URL text`` (or just ``URL`` when the
    text repeats it), and br/p/div boundaries become line breaks.
    """
    if not html:
        return ""
    text = _decode_entities(html, extra=True)
    text = _ANCHOR.sub(_rewrite_anchor, text)
    text = _BLOCK_BOUNDARY.sub("\n", text)
    text = _TAG.sub("", text)
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    return _BLANK_LINES.sub("\n", text).strip()


def _is_valid_drive_id(candidate: str) -> bool:
    return (
        "http" not in candidate
        and re.fullmatch(r"[a-zA-Z0-9_-]+", candidate) is not None
        and len(candidate) >= MIN_DRIVE_ID_LENGTH
    )


def extract_drive_id(url: str, folder: bool) -> Optional[str]:
    """Return the last well-formed folder/file id embedded in ``url``."""
    if not url:
        return None
    pattern = _FOLDER_ID if folder else _FILE_ID
    last_valid = None
    for match in pattern.finditer(url):
        candidate = match.group(1).strip()
        if _is_valid_drive_id(candidate):
            last_valid = candidate
    return last_valid


def _canonical_drive_url(url: str) -> Optional[str]:
    if "/drive/folders/" in url or "/folders/" in url:
        folder_id = extract_drive_id(url, folder=True)
        return DRIVE_FOLDER_URL.format(id=folder_id) if folder_id else None
    if "/file/d/" in url:
        file_id = extract_drive_id(url, folder=False)
        return DRIVE_FILE_URL.format(id=file_id) if file_id else None
    return None


def extract_drive_link(html: Optional[str]) -> Optional[str]:
    """
    Find the first usable Google Drive link in an HTML fragment.

    href attribute values are scanned before bare URLs in the text. The
    result is normalized to the canonical folder or file-view URL.
    """
    if not html:
        return None
    normalized = _decode_entities(html)

    for pattern in _HREF_PATTERNS:
        for match in pattern.finditer(normalized):
            url = match.group(1).strip().strip("\"'")
            if url:
                canonical = _canonical_drive_url(url)
                if canonical:
                    return canonical

    for pattern in _TEXT_PATTERNS:
        for match in pattern.finditer(normalized):
            canonical = _canonical_drive_url(match.group(0).strip())
            if canonical:
                return canonical

    return None


def is_valid_drive_url(url: Optional[str]) -> bool:
    """Reject doubled/nested Drive URLs and ids that are too short to be real."""
    if not url or _NESTED_URL.search(url):
        return False
    if "/drive/folders/" in url:
        match = _VALID_FOLDER_URL.search(url)
    elif "/file/d/" in url:
        match = _VALID_FILE_URL.search(url)
    else:
        return False
    return bool(match) and _is_valid_drive_id(match.group(1))


def extract_upload_url(html: Optional[str]) -> Optional[str]:
    """First wp-content/uploads document URL in the text, if any."""
    if not html:
        return None
    match = _UPLOAD_URL.search(html)
    return match.group(0).strip() if match else None


@dataclass
class ProcessedNotes:
    notes: Optional[str]
    resume_url: Optional[str]
    drive_folder_id: Optional[str] = None


def process_notes(raw_html: Optional[str], resume_url: Optional[str] = None) -> ProcessedNotes:
    """
    Clean exported notes and harvest document links from them.

    An upload-host URL replaces the resume, a Drive folder link becomes the
    document folder and a Drive file link is used as the resume only when
    no resume is known yet.
    """
    html = (raw_html or "").strip()
    if not html:
        return ProcessedNotes(notes=None, resume_url=resume_url)

    resume = extract_upload_url(html) or resume_url
    drive_folder_id = None

    drive_link = extract_drive_link(html)
    if drive_link and is_valid_drive_url(drive_link):
        if "/folders/" in drive_link:
            drive_folder_id = extract_drive_id(drive_link, folder=True)
        elif not resume:
            resume = drive_link

    notes = strip_html_preserving_urls(html)
    return ProcessedNotes(notes=notes or None, resume_url=resume, drive_folder_id=drive_folder_id)
