from pathlib import Path
import streamlit as st
import os, uuid, logging
from dotenv import load_dotenv

from certificate_workflow import build_workflow
from errors import CertificateWorkflowError
from row_store import REQUIRED_HEADERS, CsvRowStore

"""
Streamlit one-page UI for the certificate workflow.
- Spreadsheet id or uploaded CSV as the row store
- Generate all pending / generate a row range / regenerate one row
- Regenerating one row needs an explicit confirmation
- Shows the run summary and, for CSV runs, the updated CSV for download
- Optional password via APP_PASS
"""

load_dotenv()
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

ROOT = Path(__file__).resolve().parent
UPLOADS = ROOT / "uploads"
UPLOADS.mkdir(exist_ok=True)

st.set_page_config(page_title="Certificate Runner", layout="centered")
st.title("Certificate Runner (Sheet → Slides → PDF + QR)")

# Optional minimal password: set APP_PASS
app_pass = os.getenv("APP_PASS")
if app_pass:
    if "ok" not in st.session_state: st.session_state.ok = False
    if not st.session_state.ok:
        p = st.text_input("Enter password", type="password")
        if st.button("Login"): st.session_state.ok = (p == app_pass)
        if not st.session_state.ok: st.stop()

st.markdown(f"""
### Instructions:
1. Enter the spreadsheet id, or upload a CSV with the columns {", ".join(REQUIRED_HEADERS)}
2. Pick an action
3. Click 'Run'

Rows that already have a Verification_Link are skipped by 'Generate all pending'.
""")

spreadsheet_id = st.text_input("Spreadsheet id", os.getenv("SPREADSHEET_ID", ""))
sheet_name = st.text_input("Data tab", os.getenv("SHEET_NAME", "Sheet1"))
csv_up = st.file_uploader("...or upload CSV", type=["csv"])

action = st.radio("Action", ["Generate all pending", "Generate selected rows", "Regenerate one row"])
first_row = last_row = row_number = None
confirmed = False
if action == "Generate selected rows":
    first_row = st.number_input("First row", min_value=2, value=2, step=1)
    last_row = st.number_input("Last row", min_value=2, value=2, step=1)
elif action == "Regenerate one row":
    row_number = st.number_input("Row", min_value=2, value=2, step=1)
    confirmed = st.checkbox("I understand this replaces the existing certificate document")

run = st.button("Run")
summary_area = st.empty()
download_area = st.empty()

def _write(uploaded, path: Path):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(uploaded.getbuffer())

def _summary_text(summary):
    lines = [
        f"Total processed: {summary['total_processed']}",
        f"Generated: {summary['generated']}",
        f"Skipped: {summary['skipped']}",
        f"Failed: {summary['failed']}",
    ]
    for error in summary['errors']:
        lines.append(f"  Row {error['row']} ({error['name']}): {error['error']}")
    for doc in summary['documents']:
        lines.append(f"  {doc['certificate_id']} ({doc['name']}) - {doc['link']}")
    return "\n".join(lines)

if run:
    csv_path = None
    if csv_up:
        run_dir = UPLOADS / uuid.uuid4().hex[:8]
        csv_path = run_dir / "data.csv"; _write(csv_up, csv_path)
    elif not spreadsheet_id.strip():
        st.warning("Please enter a spreadsheet id or upload a CSV.")
        st.stop()

    with st.spinner("Running certificate workflow..."):
        try:
            workflow = build_workflow(
                csv_path=str(csv_path) if csv_path else None,
                spreadsheet_id=spreadsheet_id.strip() or None,
                sheet_name=sheet_name.strip() or "Sheet1",
            )
            if action == "Generate all pending":
                summary_area.code(_summary_text(workflow.generate_all_pending()))
            elif action == "Generate selected rows":
                summary_area.code(_summary_text(workflow.generate_selected(int(first_row), int(last_row))))
            else:
                status = workflow.regenerate_one(int(row_number), lambda row: confirmed)
                if status is None:
                    st.warning("Tick the confirmation box to regenerate this row.")
                else:
                    summary_area.code(f"Row {int(row_number)}: {status}")

            if csv_path and isinstance(workflow.row_store, CsvRowStore):
                with open(csv_path, "rb") as f:
                    download_area.download_button("Download updated CSV", f, file_name="certificates.csv", mime="text/csv")
            st.success("Done!")

        except CertificateWorkflowError as e:
            st.error(f"Error: {e}")
