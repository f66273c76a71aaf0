from unittest.mock import MagicMock

import pytest

from template_renderer import (
    ShapeGeometry, TemplateRenderer, document_name, fallback_geometry, sanitize_name,
)


def test_sanitize_name():
    assert sanitize_name(' Ada/Lovelace: "Countess"? ') == "AdaLovelace Countess"


def test_document_name():
    assert document_name("Ada <Lovelace>", "CERT-1") == "Certificate - Ada Lovelace - CERT-1"


def test_fallback_geometry_bottom_right():
    assert fallback_geometry(720, 405) == ShapeGeometry(530, 215, 150, 150, 0)


def _shape(text, x=0, y=0, w=1270000, h=1270000, scale=1):
    return {
        "size": {"width": {"magnitude": w, "unit": "EMU"}, "height": {"magnitude": h, "unit": "EMU"}},
        "transform": {"scaleX": scale, "scaleY": scale, "translateX": x, "translateY": y, "unit": "EMU"},
        "shape": {"text": {"textElements": [{"textRun": {"content": text}}]}},
    }


def _renderer(slides_json):
    slides = MagicMock()
    slides.presentations.return_value.get.return_value.execute.return_value = {"slides": slides_json}
    return TemplateRenderer(slides, MagicMock())


def test_find_marker_first_match_in_order():
    renderer = _renderer([
        {"pageElements": [_shape("Title"), {"image": {}}]},
        {"pageElements": [_shape("scan {{QR}}", x=127000, y=254000, scale=2), _shape("{{QR}}")]},
    ])
    assert renderer.find_marker("copy") == ShapeGeometry(10, 20, 200, 200, 1)


def test_find_marker_missing():
    assert _renderer([{"pageElements": [_shape("nothing here")]}]).find_marker("copy") is None


def test_render_copies_and_swallows_failed_placeholders():
    slides = MagicMock()
    drive = MagicMock()
    drive.files.return_value.copy.return_value.execute.return_value = {"id": "copy-9"}
    batch = slides.presentations.return_value.batchUpdate
    batch.return_value.execute.side_effect = [RuntimeError("quota"), {}]

    copy_id = TemplateRenderer(slides, drive).render("tmpl", "folder", "Certificate - Ada - C1",
                                                     {"Name": "Ada", "Event": "Day"})

    assert copy_id == "copy-9"
    assert drive.files.return_value.copy.call_args.kwargs["body"] == {
        "name": "Certificate - Ada - C1", "parents": ["folder"]}
    texts = [c.kwargs["body"]["requests"][0]["replaceAllText"]["containsText"]["text"]
             for c in batch.call_args_list]
    assert texts == ["{{Name}}", "{{Event}}"]
