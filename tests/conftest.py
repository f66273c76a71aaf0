import itertools
from typing import Dict, List, Optional

import pytest

from document_exporter import ExportedDocument
from row_store import REQUIRED_HEADERS, RowStore
from settings import WorkflowConfig
from template_renderer import ShapeGeometry


class FakeRowStore(RowStore):
    def __init__(self, records: List[Dict[str, str]], headers: Optional[List[str]] = None):
        self._headers = list(headers or REQUIRED_HEADERS)
        self.records = [{h: r.get(h, "") for h in self._headers} for r in records]
        self.writes = []

    def headers(self):
        return self._headers

    def rows(self):
        from row_store import CertificateRow
        return [CertificateRow(i + 2, dict(r)) for i, r in enumerate(self.records)]

    def write(self, row_number, updates):
        self.writes.append((row_number, dict(updates)))
        self.records[row_number - 2].update(updates)


class FakeRenderer:
    """Keeps rendered copies as plain text so substitutions can be inspected."""

    def __init__(self, template_text="{{Name}} attended {{Event}} ({{Certificate_ID}}) {{QR}}",
                 marker: Optional[ShapeGeometry] = ShapeGeometry(600, 300, 100, 100)):
        self.template_text = template_text
        self.marker = marker
        self.copies = {}
        self.discarded = []
        self._ids = itertools.count(1)

    def render(self, template_id, folder_id, name, values):
        copy_id = f"copy-{next(self._ids)}"
        text = self.template_text
        for key, value in values.items():
            text = text.replace("{{" + key + "}}", value)
        self.copies[copy_id] = text
        return copy_id

    def find_marker(self, copy_id, marker="{{QR}}"):
        return self.marker if marker in self.copies[copy_id] else None

    def strip_marker(self, copy_id, marker="{{QR}}"):
        self.copies[copy_id] = self.copies[copy_id].replace(marker, "")

    def discard(self, copy_id):
        self.discarded.append(copy_id)
        del self.copies[copy_id]


class FakeExporter:
    def __init__(self):
        self.live = {}
        self.exports = []
        self.trashed = []
        self._ids = itertools.count(1)

    def resolve_output_folder(self, config):
        return config.output_folder_id or "folder-1"

    def export(self, copy_id, name, folder_id, qr_image=None, geometry=None, replace=None):
        file_id = replace.file_id if replace else f"file-{next(self._ids)}"
        doc = ExportedDocument(file_id, f"{name}.pdf", f"https://drive.google.com/file/d/{file_id}/view")
        self.live[file_id] = {"doc": doc, "qr": qr_image, "geometry": geometry}
        self.exports.append({"copy_id": copy_id, "name": name, "qr": qr_image, "replace": replace})
        return doc

    def trash(self, file_id):
        self.trashed.append(file_id)
        self.live.pop(file_id, None)


class FakeQR:
    def __init__(self):
        self.targets = []

    def __call__(self, target, size):
        self.targets.append(target)
        return f"QR:{target}".encode()


@pytest.fixture()
def config():
    return WorkflowConfig(template_id="tmpl-123", web_app_url="https://verify.example.com/exec",
                          throttle_seconds=0)


@pytest.fixture()
def renderer():
    return FakeRenderer()


@pytest.fixture()
def exporter():
    return FakeExporter()


@pytest.fixture()
def qr():
    return FakeQR()
