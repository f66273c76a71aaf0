"""
Document Exporter

Turns a rendered Slides copy into a PDF, stamps the verification QR code onto
it, stores it in the output folder of Google Drive, and shares it with anyone
holding the link.

QR stamping follows the usual ReportLab overlay technique: draw the image on
an in-memory canvas the size of the target page, then merge that page onto the
exported PDF with pypdf.
"""

import re
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload
from pypdf import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from errors import ExportError
from settings import WorkflowConfig
from template_renderer import ShapeGeometry, fallback_geometry

PDF_MIME = "application/pdf"
FOLDER_MIME = "application/vnd.google-apps.folder"

_LINK_ID_PATTERNS = [
    re.compile(r"/d/([A-Za-z0-9_-]+)"),
    re.compile(r"[?&]id=([A-Za-z0-9_-]+)"),
]


@dataclass(frozen=True)
class ExportedDocument:
    file_id: str
    name: str
    link: str


def file_id_from_link(link: str) -> Optional[str]:
    """Extract the Drive file id from a sharing link, or None."""
    for pattern in _LINK_ID_PATTERNS:
        match = pattern.search(link or "")
        if match:
            return match.group(1)
    return None


def stamp_qr(pdf_bytes: bytes, image_bytes: bytes, geometry: Optional[ShapeGeometry] = None) -> bytes:
    """
    Draw a QR image onto one page of a PDF.

    Args:
        pdf_bytes: Exported certificate PDF
        image_bytes: PNG of the QR code
        geometry: Box in points from the slide's top-left corner. When None, a
            fixed bottom-right box on the first page is used.

    Returns:
        The stamped PDF
    """
    reader = PdfReader(BytesIO(pdf_bytes))
    if not reader.pages:
        raise ExportError("Exported PDF has no pages")

    if geometry is None:
        first = reader.pages[0]
        geometry = fallback_geometry(float(first.mediabox.width), float(first.mediabox.height))
    if geometry.slide_index >= len(reader.pages):
        raise ExportError(f"QR marker is on slide {geometry.slide_index + 1}, PDF has {len(reader.pages)} pages")

    target = reader.pages[geometry.slide_index]
    page_width = float(target.mediabox.width)
    page_height = float(target.mediabox.height)

    # PDF origin is bottom-left
    packet = BytesIO()
    c = canvas.Canvas(packet, pagesize=(page_width, page_height))
    c.drawImage(
        ImageReader(BytesIO(image_bytes)),
        geometry.left,
        page_height - geometry.top - geometry.height,
        width=geometry.width,
        height=geometry.height,
        preserveAspectRatio=True,
        mask="auto",
    )
    c.save()
    packet.seek(0)

    overlay = PdfReader(packet)
    target.merge_page(overlay.pages[0])

    writer = PdfWriter()
    for page in reader.pages:
        writer.add_page(page)
    output = BytesIO()
    writer.write(output)
    return output.getvalue()


class DocumentExporter:
    def __init__(self, drive_service):
        self.drive = drive_service

    def resolve_output_folder(self, config: WorkflowConfig) -> str:
        """
        Return the output folder id, creating the named folder if needed.

        Raises:
            ExportError: If the folder cannot be found or created
        """
        if config.output_folder_id:
            return config.output_folder_id

        folder_name = config.output_folder_name
        try:
            escaped = folder_name.replace("\\", "\\\\").replace("'", "\\'")
            query = f"name='{escaped}' and mimeType='{FOLDER_MIME}' and trashed=false"
            results = self.drive.files().list(q=query, fields="files(id, name)").execute()
            files = results.get("files", [])
            if files:
                folder_id = files[0]["id"]
                logging.info(f"Found existing folder: {folder_name} (ID: {folder_id})")
                return folder_id

            folder = self.drive.files().create(
                body={"name": folder_name, "mimeType": FOLDER_MIME}, fields="id"
            ).execute()
            folder_id = folder.get("id")
            logging.info(f"Created new folder: {folder_name} (ID: {folder_id})")
            return folder_id
        except HttpError as e:
            logging.error(f"Error resolving Google Drive folder: {str(e)}")
            raise ExportError(f"Failed to resolve Google Drive folder {folder_name}: {str(e)}")

    def export(self, copy_id: str, name: str, folder_id: str,
               qr_image: Optional[bytes] = None,
               geometry: Optional[ShapeGeometry] = None,
               replace: Optional[ExportedDocument] = None) -> ExportedDocument:
        """
        Export a rendered copy to a publicly link-shared PDF.

        Args:
            copy_id: Rendered Slides copy
            name: Document name without extension
            folder_id: Destination folder
            qr_image: QR PNG to stamp, or None to export without a QR code
            geometry: Where to stamp the QR code
            replace: Existing document whose content is overwritten instead of
                creating a new file; its id and link are kept

        Returns:
            The stored document

        Raises:
            ExportError: If any Drive call fails
        """
        try:
            pdf_bytes = self.drive.files().export(fileId=copy_id, mimeType=PDF_MIME).execute()
        except HttpError as e:
            raise ExportError(f"Failed to export {name} to PDF: {e}")

        if qr_image is not None:
            pdf_bytes = stamp_qr(pdf_bytes, qr_image, geometry)

        media = MediaIoBaseUpload(BytesIO(pdf_bytes), mimetype=PDF_MIME, resumable=False)
        try:
            if replace is not None:
                stored = self.drive.files().update(
                    fileId=replace.file_id,
                    media_body=media,
                    fields="id, name, webViewLink",
                    supportsAllDrives=True,
                ).execute()
                logging.info(f"Replaced content of {stored.get('name')} (ID: {replace.file_id})")
            else:
                stored = self.drive.files().create(
                    body={"name": f"{name}.pdf", "parents": [folder_id], "mimeType": PDF_MIME},
                    media_body=media,
                    fields="id, name, webViewLink",
                    supportsAllDrives=True,
                ).execute()
                logging.info(f"Uploaded {name}.pdf (ID: {stored['id']})")

            self.drive.permissions().create(
                fileId=stored["id"],
                body={"type": "anyone", "role": "reader"},
                supportsAllDrives=True,
            ).execute()
        except HttpError as e:
            raise ExportError(f"Failed to store {name}.pdf: {e}")

        return ExportedDocument(
            file_id=stored["id"],
            name=stored.get("name", f"{name}.pdf"),
            link=stored.get("webViewLink") or f"https://drive.google.com/file/d/{stored['id']}/view",
        )

    def trash(self, file_id: str) -> None:
        self.drive.files().update(
            fileId=file_id, body={"trashed": True}, supportsAllDrives=True
        ).execute()
        logging.info(f"Moved document {file_id} to trash")
