"""
UPI Service — upi://pay intent links for UPI apps and QR codes.
"""
import base64
from urllib.parse import urlencode

from reportlab.graphics import renderSVG
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors

from temple_donations.config import Settings

QR_SIZE = 200
QR_COLOR = colors.HexColor("#5a189a")


class UpiService:
    def __init__(self, vpa: str, payee_name: str):
        self.vpa = vpa
        self.payee_name = payee_name

    @classmethod
    def from_settings(cls, settings: Settings) -> "UpiService":
        return cls(vpa=settings.UPI_VPA, payee_name=settings.UPI_PAYEE_NAME)

    def transaction_note(self, txnid: str) -> str:
        return f"Donation to {self.payee_name} ({txnid})"

    def intent_url(self, txnid: str, amount: int) -> str:
        """Build the intent URL; the same string is encoded in the desktop QR code."""
        params = urlencode({
            "pa": self.vpa,
            "pn": self.payee_name,
            "tr": txnid,
            "am": str(amount),
            "cu": "INR",
            "tn": self.transaction_note(txnid),
        })
        return f"upi://pay?{params}"

    @staticmethod
    def qr_data_url(intent_url: str) -> str:
        """Render the intent as an SVG QR code inside a data: URL, ready for an <img> tag."""
        widget = QrCodeWidget(intent_url, barFillColor=QR_COLOR, barBorder=2)
        x0, y0, x1, y1 = widget.getBounds()
        drawing = Drawing(QR_SIZE, QR_SIZE, transform=[QR_SIZE / (x1 - x0), 0, 0, QR_SIZE / (y1 - y0), 0, 0])
        drawing.add(widget)
        svg = renderSVG.drawToString(drawing)
        if isinstance(svg, str):
            svg = svg.encode("utf-8")
        return "data:image/svg+xml;base64," + base64.b64encode(svg).decode("ascii")
