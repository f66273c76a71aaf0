"""
Verification endpoint.

GET /verify?id=CERT-...&format=json
GET /verify?name=Ada%20Lovelace            (HTML by default)
"""

import os
import logging
from typing import Callable

from dotenv import load_dotenv
from flask import Flask, abort, jsonify, request

from row_store import RowStore
from verification import lookup, render_html, to_json


def create_app(row_store_factory: Callable[[], RowStore]) -> Flask:
    """
    Build the verification app.

    Args:
        row_store_factory: Returns the row store to read; called per request so
            every lookup sees current data
    """
    app = Flask(__name__)

    @app.route('/')
    @app.route('/verify')
    def verify():
        fmt = request.args.get('format', 'html').strip().lower()
        if fmt not in ('html', 'json'):
            abort(400, description=f"Unsupported format: {fmt}")

        identifier = request.args.get('id')
        name = request.args.get('name')
        found = lookup(row_store_factory().rows(), identifier=identifier, name=name)
        logging.info(f"Verification lookup id={identifier!r} name={name!r}: {'found' if found else 'not found'}")

        if fmt == 'json':
            return jsonify(to_json(found))
        return render_html(found), 200, {'Content-Type': 'text/html; charset=utf-8'}

    return app


def create_default_app() -> Flask:
    """App reading the spreadsheet named by ``SPREADSHEET_ID`` (or ``LOCAL_CSV_PATH``)."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    csv_path = os.getenv('LOCAL_CSV_PATH')
    if csv_path:
        from row_store import CsvRowStore
        return create_app(lambda: CsvRowStore(csv_path))

    from google_services import build_services
    from row_store import SheetsRowStore

    sheets, _, _ = build_services()
    spreadsheet_id = os.getenv('SPREADSHEET_ID')
    sheet_name = os.getenv('SHEET_NAME', 'Sheet1')
    return create_app(lambda: SheetsRowStore(sheets, spreadsheet_id, sheet_name))


if __name__ == '__main__':
    create_default_app().run(host='0.0.0.0', port=int(os.getenv('PORT', '5000')))
