"""
Printable bills for closed service requests.

Renders a one-page PDF per closed request with fpdf2: shop header,
customer, vehicle, the original complaint, the closing mechanic's comment
and the bill total.

Usage:
    from shop.bills import BillPrinter

    printer = BillPrinter(store, output_dir="data/bills", shop_name="Mechanic Shop")
    path = printer.generate(3001)
"""

import logging
from datetime import datetime
from pathlib import Path

from fpdf import FPDF
from fpdf.errors import FPDFException

from core.record_store import RecordStore
from shop.closures import read_closure_detail
from shop.errors import BillError
from shop.models import ClosedRequestDetail
from shop.validation import require_int

logger = logging.getLogger("shop.bills")


class BillPrinter:
    """Writes closed-request bills as PDF files.

    Args:
        store:       The shared RecordStore.
        output_dir:  Directory the PDFs are written to.
        shop_name:   Name printed in the header.
        currency:    Symbol printed before amounts.
    """

    def __init__(
        self,
        store: RecordStore,
        output_dir: str = "data/bills",
        shop_name: str = "Mechanic Shop",
        currency: str = "$",
    ):
        self._store = store
        self._output_dir = Path(output_dir)
        self._shop_name = shop_name
        self._currency = currency

    def generate(self, wid) -> str | None:
        """Generate the bill for a closed request.

        Args:
            wid: The closed request number.

        Returns:
            Path to the generated PDF file, or None if the wid doesn't exist.

        Raises:
            BillError: the PDF could not be rendered or written.
        """
        number = require_int("wid", wid)
        detail = read_closure_detail(self._store, number)
        if detail is None:
            return None

        pdf_path = str(self._output_dir / f"bill_{number}.pdf")
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            self._render(detail).output(pdf_path)
        except (FPDFException, OSError) as e:
            logger.error("Bill %d failed: %s", number, e)
            raise BillError(f"Unable to write bill {number}: {e}") from e

        logger.info("Bill generated: %s", pdf_path)
        return pdf_path

    def _render(self, detail: ClosedRequestDetail) -> FPDF:
        pdf = FPDF()
        pdf.add_page()
        pdf.set_auto_page_break(auto=True, margin=15)

        # --- Header ---
        pdf.set_font("Helvetica", "B", 22)
        pdf.cell(0, 10, _pdf_safe(self._shop_name.upper()), new_x="LMARGIN", new_y="NEXT", align="C")
        pdf.ln(4)
        pdf.set_font("Helvetica", "B", 14)
        pdf.cell(0, 8, f"BILL #{detail.wid}", new_x="LMARGIN", new_y="NEXT", align="C")
        pdf.ln(4)

        # --- Customer / vehicle ---
        pdf.set_fill_color(240, 240, 240)
        pdf.set_font("Helvetica", "B", 11)
        pdf.cell(0, 7, "  Customer & Vehicle", new_x="LMARGIN", new_y="NEXT", fill=True)
        pdf.set_font("Helvetica", "", 10)
        pdf.cell(95, 6, _pdf_safe(f"  Customer: {detail.customer_name} (#{detail.customer_id})"),
                 new_x="RIGHT")
        pdf.cell(95, 6, _pdf_safe(f"Vehicle: {detail.car_name}"), new_x="LMARGIN", new_y="NEXT")
        pdf.cell(95, 6, _pdf_safe(f"  VIN: {detail.car_vin}"), new_x="RIGHT")
        pdf.cell(95, 6, f"Odometer: {detail.odometer:,}", new_x="LMARGIN", new_y="NEXT")
        pdf.ln(4)

        # --- Request ---
        pdf.set_font("Helvetica", "B", 11)
        pdf.cell(0, 7, "  Service Request", new_x="LMARGIN", new_y="NEXT", fill=True)
        pdf.set_font("Helvetica", "", 10)
        pdf.cell(95, 6, f"  Request: #{detail.rid}", new_x="RIGHT")
        pdf.cell(95, 6, _pdf_safe(f"Opened: {detail.request_date}"), new_x="LMARGIN", new_y="NEXT")
        if detail.complaint:
            pdf.multi_cell(0, 5, _pdf_safe(f"  Complaint: {detail.complaint}"))
        pdf.ln(4)

        # --- Closure ---
        pdf.set_font("Helvetica", "B", 11)
        pdf.cell(0, 7, "  Work Performed", new_x="LMARGIN", new_y="NEXT", fill=True)
        pdf.set_font("Helvetica", "", 10)
        mechanic = detail.mechanic_name or f"#{detail.mid}"
        pdf.cell(95, 6, _pdf_safe(f"  Mechanic: {mechanic}"), new_x="RIGHT")
        pdf.cell(95, 6, _pdf_safe(f"Closed: {detail.date}"), new_x="LMARGIN", new_y="NEXT")
        if detail.comment:
            pdf.multi_cell(0, 5, _pdf_safe(f"  {detail.comment}"))
        pdf.ln(4)

        # --- Total ---
        pdf.set_font("Helvetica", "B", 12)
        pdf.cell(120, 8, "  TOTAL DUE:", new_x="RIGHT")
        pdf.cell(70, 8, _pdf_safe(f"{self._currency}{detail.bill:,}"), align="R",
                 new_x="LMARGIN", new_y="NEXT")

        # --- Footer ---
        pdf.ln(8)
        pdf.set_font("Helvetica", "I", 9)
        generated = datetime.now().strftime("%Y-%m-%d %H:%M")
        pdf.cell(0, 5, f"Bill generated: {generated}", new_x="LMARGIN", new_y="NEXT", align="C")

        return pdf


def _pdf_safe(text: str) -> str:
    """Replace characters Helvetica can't encode."""
    text = (
        text.replace("—", "-")
        .replace("–", "-")
        .replace("‘", "'")
        .replace("’", "'")
        .replace("“", '"')
        .replace("”", '"')
        .replace("…", "...")
    )
    return text.encode("latin-1", "replace").decode("latin-1")
