"""
Certificate Workflow

Generates personalized certificates for the rows of a spreadsheet (or CSV
file) from a Google Slides template, stamps a verification QR code on each,
stores the PDF publicly link-shared in Google Drive, and writes the link and
status back into the row.

Per row:
1. Skip rows that already have a Verification_Link (unless forced)
2. Assign and persist a Certificate_ID when the row has none
3. Copy the template and fill every {{Header}} placeholder
4. Stamp the QR code and export the PDF
5. Write Verification_Link and Status back

A failure inside one row is recorded in that row's Status column and never
stops the batch.

Required columns:
- Name, Event, Date, Issuer, Certificate_ID, Verification_Link, Status
"""

import os
import sys
import time
import secrets
import string
import logging
import argparse
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional
from urllib.parse import quote

from dotenv import load_dotenv

from document_exporter import DocumentExporter, ExportedDocument, file_id_from_link
from errors import CertificateWorkflowError, RowAccessError
from qr_provider import fetch_qr
from row_store import (
    CERTIFICATE_ID, STATUS, STATUS_ERROR_PREFIX, STATUS_GENERATED, STATUS_SKIPPED,
    VERIFICATION_LINK, CertificateRow, CsvRowStore, RowStore, SheetsRowStore,
)
from settings import WorkflowConfig, load_config
from template_renderer import TemplateRenderer, document_name

CERT_ID_ALPHABET = string.ascii_uppercase + string.digits


def configure_logging(log_file: str = 'certificate_workflow.log') -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )


def generate_certificate_id(now: Optional[datetime] = None) -> str:
    """
    Generate a certificate identifier.

    Format: ``CERT-YYYYMMDDHHMMSS-XXXXXX`` where X is an uppercase base36 character.
    """
    now = now or datetime.now()
    suffix = "".join(secrets.choice(CERT_ID_ALPHABET) for _ in range(6))
    return f"CERT-{now.strftime('%Y%m%d%H%M%S')}-{suffix}"


def verification_url(base_url: str, certificate_id: str) -> str:
    return f"{base_url}?id={quote(certificate_id, safe='')}"


class CertificateWorkflow:
    """
    Orchestrates certificate generation for rows of a row store.

    Attributes:
        config (WorkflowConfig): Settings loaded once for the batch
        row_store (RowStore): Source of rows and destination of results
        renderer (TemplateRenderer): Copies and fills the Slides template
        exporter (DocumentExporter): Exports, stores and shares PDFs
        qr_fetcher (callable): ``(target_url, size) -> png bytes``
        generation_summary (dict): Summary of the last batch
    """

    def __init__(self, config: WorkflowConfig, row_store: RowStore, renderer: TemplateRenderer,
                 exporter: DocumentExporter, qr_fetcher: Optional[Callable[..., bytes]] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], datetime] = datetime.now):
        self.config = config
        self.row_store = row_store
        self.renderer = renderer
        self.exporter = exporter
        self.qr_fetcher = qr_fetcher or (
            lambda target, size: fetch_qr(target, size, service_url=config.qr_service_url)
        )
        self.sleep = sleep
        self.clock = clock
        self._folder_id: Optional[str] = None
        self.generation_summary = self._new_summary()

    @staticmethod
    def _new_summary() -> Dict[str, Any]:
        return {
            'total_processed': 0,
            'generated': 0,
            'skipped': 0,
            'failed': 0,
            'errors': [],
            'documents': [],
        }

    @property
    def folder_id(self) -> str:
        if self._folder_id is None:
            self._folder_id = self.exporter.resolve_output_folder(self.config)
        return self._folder_id

    def generate_one(self, row: CertificateRow, force: bool = False) -> str:
        """
        Generate the certificate for one row.

        Errors are caught here and written to the row's Status column.

        Args:
            row: Row to process
            force: Regenerate even when a Verification_Link already exists

        Returns:
            The Status written to the row
        """
        try:
            if row.verification_link and not force:
                self.row_store.update(row, {STATUS: STATUS_SKIPPED})
                logging.info(f"Row {row.row_number}: already generated, skipped")
                return STATUS_SKIPPED

            previous_id = file_id_from_link(row.verification_link)
            document = self._generate(row)
            self._record_link(row, document)
        except Exception as e:
            status = f"{STATUS_ERROR_PREFIX}{str(e)}"
            logging.error(f"Row {row.row_number} ({row.name or 'Unknown'}): {str(e)}")
            try:
                self.row_store.update(row, {STATUS: status})
            except Exception as write_error:
                logging.error(f"Row {row.row_number}: could not record error status: {str(write_error)}")
            return status

        if previous_id and previous_id != document.file_id:
            try:
                self.exporter.trash(previous_id)
            except Exception as e:
                logging.warning(f"Row {row.row_number}: previous document {previous_id} not removed: {str(e)}")

        self.generation_summary['documents'].append({
            'row': row.row_number,
            'certificate_id': row.certificate_id,
            'name': row.name,
            'link': document.link,
        })
        logging.info(f"Row {row.row_number}: generated {document.name}")
        return STATUS_GENERATED

    def _record_link(self, row: CertificateRow, document: ExportedDocument) -> None:
        """Write the link back; a document no row points at is trashed."""
        try:
            self.row_store.update(row, {VERIFICATION_LINK: document.link, STATUS: STATUS_GENERATED})
        except Exception:
            self._trash_quietly(document.file_id, row)
            raise

    def _trash_quietly(self, file_id: str, row: CertificateRow) -> None:
        try:
            self.exporter.trash(file_id)
        except Exception as e:
            logging.warning(f"Row {row.row_number}: could not trash document {file_id}: {str(e)}")

    def _generate(self, row: CertificateRow) -> ExportedDocument:
        certificate_id = row.certificate_id
        if not certificate_id:
            certificate_id = generate_certificate_id(self.clock())
            self.row_store.update(row, {CERTIFICATE_ID: certificate_id})
            logging.info(f"Row {row.row_number}: assigned {certificate_id}")

        template_id = self.config.require_template()

        values = {header: row.get(header) for header in row.values}
        values[CERTIFICATE_ID] = certificate_id

        name = document_name(row.name, certificate_id)
        folder_id = self.folder_id
        copy_id = self.renderer.render(template_id, folder_id, name, values)
        try:
            geometry = self.renderer.find_marker(copy_id)
            if geometry is None:
                logging.info(f"Row {row.row_number}: no QR marker found, using bottom-right position")
            else:
                self.renderer.strip_marker(copy_id)

            if self.config.web_app_url:
                target = verification_url(self.config.web_app_url, certificate_id)
                qr_image = self.qr_fetcher(target, self.config.qr_size)
                return self.exporter.export(copy_id, name, folder_id, qr_image, geometry)

            # The QR must point at the document it is printed on, so export
            # once to obtain the link, then overwrite that file with the QR.
            draft = self.exporter.export(copy_id, name, folder_id)
            try:
                qr_image = self.qr_fetcher(draft.link, self.config.qr_size)
                return self.exporter.export(copy_id, name, folder_id, qr_image, geometry, replace=draft)
            except Exception:
                self._trash_quietly(draft.file_id, row)
                raise
        finally:
            try:
                self.renderer.discard(copy_id)
            except Exception as e:
                logging.warning(f"Could not discard rendered copy {copy_id}: {str(e)}")

    def _run_batch(self, rows: Iterable[CertificateRow], force: bool) -> Dict[str, Any]:
        self.generation_summary = self._new_summary()
        for index, row in enumerate(rows):
            if index:
                self.sleep(self.config.throttle_seconds)
            self.generation_summary['total_processed'] += 1
            status = self.generate_one(row, force=force)
            if status == STATUS_GENERATED:
                self.generation_summary['generated'] += 1
            elif status == STATUS_SKIPPED:
                self.generation_summary['skipped'] += 1
            else:
                self.generation_summary['failed'] += 1
                self.generation_summary['errors'].append({
                    'row': row.row_number,
                    'name': row.name or 'Unknown',
                    'error': status[len(STATUS_ERROR_PREFIX):],
                })

        logging.info(f"Certificate generation completed:")
        logging.info(f"  Total processed: {self.generation_summary['total_processed']}")
        logging.info(f"  Generated: {self.generation_summary['generated']}")
        logging.info(f"  Skipped: {self.generation_summary['skipped']}")
        logging.info(f"  Failed: {self.generation_summary['failed']}")
        return self.generation_summary

    def generate_all_pending(self) -> Dict[str, Any]:
        """Process every row; rows that already have a link are skipped."""
        self.row_store.validate_headers()
        return self._run_batch(self.row_store.rows(), force=False)

    def generate_selected(self, first_row: int, last_row: int) -> Dict[str, Any]:
        """
        Process the inclusive range of sheet rows ``first_row..last_row``.

        Every row in the range is regenerated, existing links included.
        """
        if first_row < 2 or last_row < first_row:
            raise RowAccessError(f"Invalid row range {first_row}-{last_row}; data starts at row 2")
        self.row_store.validate_headers()
        rows = [r for r in self.row_store.rows() if first_row <= r.row_number <= last_row]
        return self._run_batch(rows, force=True)

    def regenerate_one(self, row_number: int,
                       confirm: Callable[[CertificateRow], bool]) -> Optional[str]:
        """
        Regenerate a single row after explicit confirmation.

        Args:
            row_number: Sheet row number
            confirm: Called with the row; nothing is changed unless it returns True

        Returns:
            The row's new Status, or None when not confirmed
        """
        self.row_store.validate_headers()
        row = self.row_store.get_row(row_number)
        if not confirm(row):
            logging.info(f"Row {row_number}: regeneration cancelled")
            return None
        return self.generate_one(row, force=True)


def build_workflow(row_store: Optional[RowStore] = None, csv_path: Optional[str] = None,
                   spreadsheet_id: Optional[str] = None, sheet_name: str = 'Sheet1',
                   services=None) -> CertificateWorkflow:
    """
    Wire a workflow against the live Google services.

    Raises:
        RowAccessError: If neither a CSV path nor a spreadsheet id is available,
            or the spreadsheet has no Config tab
    """
    from google_services import build_services

    sheets, slides, drive = services or build_services()
    if row_store is None:
        if csv_path:
            row_store = CsvRowStore(csv_path)
        elif spreadsheet_id:
            row_store = SheetsRowStore(sheets, spreadsheet_id, sheet_name)
        else:
            raise RowAccessError("Either --csv or --spreadsheet-id (SPREADSHEET_ID) must be given")

    config = load_config(row_store.config_rows())
    return CertificateWorkflow(config, row_store, TemplateRenderer(slides, drive), DocumentExporter(drive))


def print_summary(summary: Dict[str, Any]) -> None:
    print("\n" + "=" * 60)
    print("CERTIFICATE GENERATION SUMMARY")
    print("=" * 60)
    print(f"Total processed: {summary['total_processed']}")
    print(f"Generated: {summary['generated']}")
    print(f"Skipped: {summary['skipped']}")
    print(f"Failed: {summary['failed']}")

    if summary['errors']:
        print(f"\nErrors:")
        for error in summary['errors']:
            print(f"  Row {error['row']} ({error['name']}): {error['error']}")

    if summary['documents']:
        print(f"\nGenerated Documents:")
        for doc in summary['documents']:
            print(f"  {doc['certificate_id']} ({doc['name']}) - {doc['link']}")
    print("=" * 60)


def main(argv=None):
    """Command-line entry point."""
    load_dotenv()
    configure_logging()

    parser = argparse.ArgumentParser(description="Generate certificates from a Slides template and record verification links")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--csv", help="Use a local CSV file as the row store")
    source.add_argument("--spreadsheet-id", default=os.getenv("SPREADSHEET_ID"), help="Google Sheets spreadsheet id")
    parser.add_argument("--sheet", default=os.getenv("SHEET_NAME", "Sheet1"), help="Data tab name (default: Sheet1)")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("pending", help="Generate every row without a verification link")
    selected = commands.add_parser("selected", help="Regenerate an inclusive range of sheet rows")
    selected.add_argument("first_row", type=int)
    selected.add_argument("last_row", type=int)
    regenerate = commands.add_parser("regenerate", help="Regenerate one row, replacing its document")
    regenerate.add_argument("row", type=int)
    regenerate.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    args = parser.parse_args(argv)

    try:
        workflow = build_workflow(csv_path=args.csv, spreadsheet_id=args.spreadsheet_id, sheet_name=args.sheet)

        if args.command == "pending":
            print_summary(workflow.generate_all_pending())
        elif args.command == "selected":
            print_summary(workflow.generate_selected(args.first_row, args.last_row))
        else:
            def confirm(row: CertificateRow) -> bool:
                if args.yes:
                    return True
                answer = input(f"Regenerate row {row.row_number} ({row.name}, {row.certificate_id or 'no id'})? "
                               f"This replaces the existing document. [y/N] ")
                return answer.strip().lower() in ("y", "yes")

            status = workflow.regenerate_one(args.row, confirm)
            print(f"Row {args.row}: {status or 'cancelled'}")

    except CertificateWorkflowError as e:
        logging.error(f"Certificate generation failed: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
