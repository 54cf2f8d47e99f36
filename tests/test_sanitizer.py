"""
Tests for HTML cleanup and document link extraction from exported notes.
"""
from import_engine.domain.imports.sanitizer import (
    extract_drive_id,
    extract_drive_link,
    extract_upload_url,
    is_valid_drive_url,
    process_notes,
    strip_html,
    strip_html_preserving_urls,
)

FOLDER_ID = "1AbCdEfGhIjKlMnOp"
FILE_ID = "9ZyXwVuTsRqPoNm"


def test_strip_html_decodes_entities_and_collapses_whitespace():
    assert strip_html("<p>Tom &amp; Jerry</p>\n<b>  rock </b>") == "Tom & Jerry rock"
    assert strip_html(None) == ""


def test_strip_html_preserving_urls_keeps_link_targets_and_lines():
    html = (
        '<p>Portfolio: <a href="https://example.com/work">my work</a></p>'
        '<div>CV <a href="https://example.com/cv.pdf">https://example.com/cv.pdf</a></div>'
        "Line&nbsp;three<br/>Line four"
    )

    text = strip_html_preserving_urls(html)

    assert text.splitlines() == [
        "Portfolio: https://example.com/work my work",
        "CV https://example.com/cv.pdf",
        "Line three",
        "Line four",
    ]


def test_extract_drive_link_prefers_href_and_canonicalizes():
    html = (
        f'See https://drive.google.com/file/d/{FILE_ID}/view and '
        f'<a href="https://drive.google.com/drive/folders/{FOLDER_ID}?usp=sharing">folder</a>'
    )

    assert extract_drive_link(html) == f"https://drive.google.com/drive/folders/{FOLDER_ID}"


def test_extract_drive_link_from_plain_text():
    html = f"resume: https://drive.google.com/file/d/{FILE_ID}/view?usp=drivesdk"

    assert extract_drive_link(html) == f"https://drive.google.com/file/d/{FILE_ID}/view"


def test_short_drive_ids_are_ignored():
    assert extract_drive_id("https://drive.google.com/drive/folders/abc", folder=True) is None
    assert extract_drive_link('<a href="https://drive.google.com/drive/folders/abc">x</a>') is None


def test_is_valid_drive_url_rejects_nested_urls():
    assert is_valid_drive_url(f"https://drive.google.com/drive/folders/{FOLDER_ID}")
    assert not is_valid_drive_url(
        f"https://drive.google.com/drive/folders/https://drive.google.com/drive/folders/{FOLDER_ID}"
    )
    assert not is_valid_drive_url("https://example.com/file.pdf")


def test_extract_upload_url():
    html = 'CV: <a href="https://jobs.example.com/wp-content/uploads/2024/05/cv.pdf">cv</a>'

    assert extract_upload_url(html) == "https://jobs.example.com/wp-content/uploads/2024/05/cv.pdf"
    assert extract_upload_url("no links here") is None


class TestProcessNotes:
    def test_upload_url_becomes_resume_and_folder_is_recorded(self):
        html = (
            "<p>Strong candidate</p>"
            '<a href="https://jobs.example.com/wp-content/uploads/cv.pdf">CV</a>'
            f'<a href="https://drive.google.com/drive/folders/{FOLDER_ID}">Docs</a>'
        )

        processed = process_notes(html, resume_url="https://old.example.com/cv.pdf")

        assert processed.resume_url == "https://jobs.example.com/wp-content/uploads/cv.pdf"
        assert processed.drive_folder_id == FOLDER_ID
        assert processed.notes.startswith("Strong candidate")

    def test_drive_file_only_fills_missing_resume(self):
        html = f'<a href="https://drive.google.com/file/d/{FILE_ID}/view">resume</a>'

        assert process_notes(html).resume_url == f"https://drive.google.com/file/d/{FILE_ID}/view"
        assert process_notes(html, resume_url="https://cv.example.com/a.pdf").resume_url == (
            "https://cv.example.com/a.pdf"
        )

    def test_empty_notes_keep_existing_resume(self):
        processed = process_notes("   ", resume_url="https://cv.example.com/a.pdf")

        assert processed.notes is None
        assert processed.resume_url == "https://cv.example.com/a.pdf"
        assert processed.drive_folder_id is None
