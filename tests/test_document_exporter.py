from io import BytesIO
from unittest.mock import MagicMock

import pytest
from PIL import Image
from pypdf import PdfReader
from reportlab.pdfgen import canvas

from document_exporter import DocumentExporter, ExportedDocument, file_id_from_link, stamp_qr
from settings import WorkflowConfig
from template_renderer import ShapeGeometry


def _pdf(pages=1, size=(720, 405)):
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=size)
    for _ in range(pages):
        c.drawString(100, 100, "Certificate")
        c.showPage()
    c.save()
    return buffer.getvalue()


def _png():
    buffer = BytesIO()
    Image.new("RGB", (30, 30), "black").save(buffer, "PNG")
    return buffer.getvalue()


def _image_count(page):
    return len(page.images)


@pytest.mark.parametrize("link, file_id", [
    ("https://drive.google.com/file/d/1AbC_-9/view?usp=drivesdk", "1AbC_-9"),
    ("https://drive.google.com/open?id=xyz", "xyz"),
    ("", None),
    ("not a link", None),
])
def test_file_id_from_link(link, file_id):
    assert file_id_from_link(link) == file_id


def test_stamp_qr_on_marker_page():
    stamped = stamp_qr(_pdf(pages=2), _png(), ShapeGeometry(600, 300, 100, 100, slide_index=1))
    reader = PdfReader(BytesIO(stamped))
    assert len(reader.pages) == 2
    assert _image_count(reader.pages[0]) == 0
    assert _image_count(reader.pages[1]) == 1


def test_stamp_qr_fallback_first_page():
    reader = PdfReader(BytesIO(stamp_qr(_pdf(), _png())))
    assert _image_count(reader.pages[0]) == 1


def _drive():
    drive = MagicMock()
    files = drive.files.return_value
    files.export.return_value.execute.return_value = _pdf()
    files.create.return_value.execute.return_value = {
        "id": "new-id", "name": "Certificate - Ada - C1.pdf",
        "webViewLink": "https://drive.google.com/file/d/new-id/view"}
    files.update.return_value.execute.return_value = {
        "id": "draft-id", "name": "Certificate - Ada - C1.pdf",
        "webViewLink": "https://drive.google.com/file/d/draft-id/view"}
    return drive


def test_export_creates_public_pdf():
    drive = _drive()
    doc = DocumentExporter(drive).export("copy-1", "Certificate - Ada - C1", "folder-1", _png())

    assert doc == ExportedDocument("new-id", "Certificate - Ada - C1.pdf",
                                   "https://drive.google.com/file/d/new-id/view")
    create = drive.files.return_value.create.call_args.kwargs
    assert create["body"] == {"name": "Certificate - Ada - C1.pdf", "parents": ["folder-1"],
                              "mimeType": "application/pdf"}
    permission = drive.permissions.return_value.create.call_args.kwargs
    assert permission["fileId"] == "new-id"
    assert permission["body"] == {"type": "anyone", "role": "reader"}


def test_export_replace_keeps_file_id():
    drive = _drive()
    draft = ExportedDocument("draft-id", "Certificate - Ada - C1.pdf", "https://drive.google.com/file/d/draft-id/view")
    doc = DocumentExporter(drive).export("copy-1", "Certificate - Ada - C1", "folder-1", _png(), replace=draft)

    assert doc.file_id == "draft-id"
    assert doc.link == draft.link
    assert drive.files.return_value.update.call_args.kwargs["fileId"] == "draft-id"
    drive.files.return_value.create.assert_not_called()


def test_resolve_folder_prefers_configured_id():
    drive = MagicMock()
    assert DocumentExporter(drive).resolve_output_folder(WorkflowConfig(output_folder_id="fid")) == "fid"
    drive.files.assert_not_called()


def test_resolve_folder_creates_named_folder():
    drive = MagicMock()
    files = drive.files.return_value
    files.list.return_value.execute.return_value = {"files": []}
    files.create.return_value.execute.return_value = {"id": "created"}

    assert DocumentExporter(drive).resolve_output_folder(WorkflowConfig()) == "created"
    assert files.create.call_args.kwargs["body"] == {
        "name": "Generated_Certificates", "mimeType": "application/vnd.google-apps.folder"}


def test_resolve_folder_reuses_existing():
    drive = MagicMock()
    drive.files.return_value.list.return_value.execute.return_value = {"files": [{"id": "existing", "name": "x"}]}
    assert DocumentExporter(drive).resolve_output_folder(WorkflowConfig()) == "existing"
