import subprocess
import tempfile
from pathlib import Path

from .errors import RenderError
from .invoice import compose_invoice, render_invoice_html
from .logging_config import get_logger

log = get_logger(__name__)


class InvoiceRenderer:
    """
    Prints invoices to PDF with a headless Chromium.

    The browser runs as a child process with a hard timeout; every way
    rendering can fail (binary missing or not executable, crash, hang, no
    output, unwritable invoice directory) surfaces as RenderError. The
    finished PDF is kept under invoice_dir as <invoice_no>.pdf and its bytes
    are returned.
    """

    def __init__(self, seller, chrome_bin="chromium", invoice_dir="invoices", timeout=60.0):
        self.seller = seller
        self.chrome_bin = chrome_bin
        self.invoice_dir = Path(invoice_dir)
        self.timeout = timeout

    def render(self, order) -> bytes:
        invoice = compose_invoice(order)
        html = render_invoice_html(invoice, order, self.seller)

        try:
            self.invoice_dir.mkdir(parents=True, exist_ok=True)
            output = (self.invoice_dir / f"{order.invoice_no or order.order_no}.pdf").resolve()

            with tempfile.TemporaryDirectory() as workdir:
                page = Path(workdir) / "invoice.html"
                page.write_text(html, encoding="utf-8")
                self._print_to_pdf(page, workdir, output)

            if not output.is_file() or output.stat().st_size == 0:
                raise RenderError(f"PDF renderer produced no output for {order.order_no}")
            pdf = output.read_bytes()
        except OSError as e:
            raise RenderError(f"PDF rendering failed for {order.order_no}: {e}") from e

        log.info("invoice rendered", order_no=order.order_no, invoice_no=order.invoice_no, path=str(output))
        return pdf

    def _print_to_pdf(self, page, workdir, output):
        command = [
            self.chrome_bin,
            "--headless",
            "--no-sandbox",
            "--disable-gpu",
            "--no-pdf-header-footer",
            f"--user-data-dir={workdir}",
            f"--print-to-pdf={output}",
            page.as_uri(),
        ]
        try:
            subprocess.run(command, check=True, capture_output=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise RenderError(f"PDF renderer not found: {self.chrome_bin}") from e
        except subprocess.TimeoutExpired as e:
            raise RenderError(f"PDF renderer timed out after {self.timeout}s") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", "replace")[-500:]
            raise RenderError(f"PDF renderer exited with {e.returncode}: {stderr}") from e
