"""
Certificate verification lookup.

Answers "is this certificate valid?" by scanning the row store. Identifiers
match exactly and case-sensitively; names match case-insensitively and are
only consulted when no identifier is given.
"""

import html
from typing import Dict, Iterable, Optional

from row_store import (
    CERTIFICATE_ID, DATE, EVENT, ISSUER, NAME, VERIFICATION_LINK, CertificateRow,
)

DISPLAY_FIELDS = [NAME, EVENT, DATE, ISSUER, CERTIFICATE_ID]


def lookup(rows: Iterable[CertificateRow], identifier: Optional[str] = None,
           name: Optional[str] = None) -> Optional[Dict[str, str]]:
    """
    Find a certificate row.

    Args:
        rows: Rows of the row store
        identifier: Certificate_ID to match exactly
        name: Holder name to match case-insensitively, used only without identifier

    Returns:
        The row's field mapping, or None when nothing matches
    """
    identifier = (identifier or "").strip()
    name = (name or "").strip().lower()
    if not identifier and not name:
        return None

    for row in rows:
        if identifier:
            if row.certificate_id == identifier:
                return {k: row.get(k) for k in row.values}
        elif row.name.lower() == name:
            return {k: row.get(k) for k in row.values}
    return None


def to_json(found: Optional[Dict[str, str]]) -> Dict[str, object]:
    return {"valid": found is not None, "data": found}


def escape_html(value: Optional[str]) -> str:
    return html.escape(str(value or ""), quote=True)


def render_html(found: Optional[Dict[str, str]]) -> str:
    """Render the lookup result as a small self-contained HTML page."""
    if found is None:
        body = """
            <h1 style='color: #c0392b;'>Certificate Not Found</h1>
            <p>No certificate matches the given identifier or name.</p>"""
    else:
        items = "\n".join(
            f"                <p><strong>{escape_html(field.replace('_', ' '))}:</strong> "
            f"{escape_html(found.get(field))}</p>"
            for field in DISPLAY_FIELDS
        )
        link = found.get(VERIFICATION_LINK)
        link_html = (
            f"\n            <p><a href=\"{escape_html(link)}\">View certificate document</a></p>"
            if link else ""
        )
        body = f"""
            <h1 style='color: #27ae60;'>Certificate Verified</h1>
            <div style='border: 1px solid #ccc; padding: 15px; display: inline-block; text-align: left;'>
{items}
            </div>{link_html}"""

    return f"""<!DOCTYPE html>
<html>
    <head><meta charset="utf-8"><title>Certificate Verification</title></head>
    <body style='font-family: sans-serif; text-align: center; padding: 20px;'>{body}
    </body>
</html>
"""
