"""
Template Renderer

Copies the Google Slides template into the output folder, fills every
``{{Header}}`` placeholder with the row's values, and locates the shape
carrying the ``{{QR}}`` marker so the exporter knows where to put the QR code.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from googleapiclient.errors import HttpError

from errors import ExportError

QR_MARKER = "{{QR}}"
DOCUMENT_PREFIX = "Certificate"
EMU_PER_POINT = 12700

# Fallback QR box when the template has no marker shape
FALLBACK_QR_SIZE = 150
FALLBACK_QR_MARGIN = 40

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')


@dataclass(frozen=True)
class ShapeGeometry:
    """Position and size in points, measured from the slide's top-left corner."""
    left: float
    top: float
    width: float
    height: float
    slide_index: int = 0


def sanitize_name(name: str) -> str:
    """Strip characters that are unsafe in file names."""
    return _UNSAFE_CHARS.sub("", name or "").strip()


def document_name(name: str, certificate_id: str) -> str:
    """
    Build the document name for a certificate.

    Example:
        document_name("Ada Lovelace", "CERT-1") -> "Certificate - Ada Lovelace - CERT-1"
    """
    return f"{DOCUMENT_PREFIX} - {sanitize_name(name)} - {certificate_id}"


def fallback_geometry(page_width: float, page_height: float) -> ShapeGeometry:
    """Bottom-right box on the first slide."""
    return ShapeGeometry(
        left=page_width - FALLBACK_QR_SIZE - FALLBACK_QR_MARGIN,
        top=page_height - FALLBACK_QR_SIZE - FALLBACK_QR_MARGIN,
        width=FALLBACK_QR_SIZE,
        height=FALLBACK_QR_SIZE,
        slide_index=0,
    )


def _to_points(magnitude: float, unit: str) -> float:
    if unit == "PT":
        return float(magnitude)
    return float(magnitude) / EMU_PER_POINT


def _shape_text(element: dict) -> str:
    text = element.get("shape", {}).get("text", {})
    return "".join(
        part.get("textRun", {}).get("content", "")
        for part in text.get("textElements", [])
    )


def _element_geometry(element: dict, slide_index: int) -> ShapeGeometry:
    size = element.get("size", {})
    transform = element.get("transform", {})
    unit = transform.get("unit", "EMU")
    width = size.get("width", {})
    height = size.get("height", {})
    return ShapeGeometry(
        left=_to_points(transform.get("translateX", 0), unit),
        top=_to_points(transform.get("translateY", 0), unit),
        width=_to_points(width.get("magnitude", 0), width.get("unit", "EMU")) * transform.get("scaleX", 1),
        height=_to_points(height.get("magnitude", 0), height.get("unit", "EMU")) * transform.get("scaleY", 1),
        slide_index=slide_index,
    )


class TemplateRenderer:
    """
    Renders copies of a Slides template.

    Attributes:
        slides: Google Slides v1 service
        drive: Google Drive v3 service
    """

    def __init__(self, slides_service, drive_service):
        self.slides = slides_service
        self.drive = drive_service

    def render(self, template_id: str, folder_id: str, name: str, values: Dict[str, str]) -> str:
        """
        Copy the template and substitute placeholders.

        Args:
            template_id: Slides template file id
            folder_id: Drive folder that receives the copy
            name: Name of the copy
            values: Placeholder key (without braces) -> replacement text

        Returns:
            File id of the rendered copy

        Raises:
            ExportError: If the template cannot be copied
        """
        try:
            copy = self.drive.files().copy(
                fileId=template_id,
                body={"name": name, "parents": [folder_id]},
                fields="id",
                supportsAllDrives=True,
            ).execute()
        except HttpError as e:
            raise ExportError(f"Failed to copy template {template_id}: {e}")

        copy_id = copy["id"]
        logging.info(f"Copied template to {name} (ID: {copy_id})")

        for key, value in values.items():
            try:
                self.replace_text(copy_id, "{{" + key + "}}", value)
            except Exception as e:
                logging.warning(f"Could not replace placeholder {{{{{key}}}}}: {str(e)}")
        return copy_id

    def replace_text(self, copy_id: str, placeholder: str, value: str) -> None:
        self.slides.presentations().batchUpdate(
            presentationId=copy_id,
            body={"requests": [{
                "replaceAllText": {
                    "containsText": {"text": placeholder, "matchCase": True},
                    "replaceText": value or "",
                }
            }]},
        ).execute()

    def find_marker(self, copy_id: str, marker: str = QR_MARKER) -> Optional[ShapeGeometry]:
        """
        Locate the first shape containing ``marker``.

        Slides are scanned in order, then shapes within a slide in order.

        Returns:
            Geometry of the shape, or None when no shape carries the marker
        """
        presentation = self.slides.presentations().get(presentationId=copy_id).execute()
        for slide_index, slide in enumerate(presentation.get("slides", [])):
            for element in slide.get("pageElements", []):
                if marker in _shape_text(element):
                    return _element_geometry(element, slide_index)
        return None

    def strip_marker(self, copy_id: str, marker: str = QR_MARKER) -> None:
        self.replace_text(copy_id, marker, "")

    def discard(self, copy_id: str) -> None:
        """Move the rendered copy to the trash."""
        self.drive.files().update(
            fileId=copy_id, body={"trashed": True}, supportsAllDrives=True
        ).execute()
        logging.info(f"Discarded rendered copy {copy_id}")
