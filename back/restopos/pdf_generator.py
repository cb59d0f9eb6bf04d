"""
Sale Ticket PDF Generator

Receipt copy of a sale, rendered with ReportLab on a narrow ticket page.
"""

from datetime import datetime, timezone
from decimal import Decimal
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    HRFlowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

# 80mm thermal roll; height grows with the number of lines
TICKET_WIDTH = 80 * mm
BASE_HEIGHT = 120 * mm
LINE_HEIGHT = 9 * mm

DARK_COLOR = colors.HexColor("#1f2937")
MUTED_COLOR = colors.HexColor("#6b7280")


def _money(value) -> str:
    return f"${Decimal(str(value)):,.2f}"


def _format_date(value) -> str:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.strftime("%d/%m/%Y %H:%M")


def generate_sale_ticket_pdf(sale: dict, restaurant_name: str) -> BytesIO:
    """
    Generate the ticket copy of a sale.

    Args:
        sale: Sale fields (id, customer_name, table_number, sale_date,
              user_name, status, items, total_price); items carry
              name, price and quantity
        restaurant_name: Shown as the ticket header

    Returns:
        BytesIO buffer containing the PDF
    """
    items = sale.get("items") or []
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=(TICKET_WIDTH, BASE_HEIGHT + LINE_HEIGHT * len(items)),
        rightMargin=4 * mm,
        leftMargin=4 * mm,
        topMargin=5 * mm,
        bottomMargin=5 * mm,
    )

    styles = getSampleStyleSheet()
    header_style = ParagraphStyle(
        "TicketHeader",
        parent=styles["Normal"],
        fontName="Courier-Bold",
        fontSize=11,
        textColor=DARK_COLOR,
        alignment=TA_CENTER,
        spaceAfter=2 * mm,
    )
    center_style = ParagraphStyle(
        "TicketCenter",
        parent=styles["Normal"],
        fontName="Courier",
        fontSize=8,
        leading=10,
        textColor=DARK_COLOR,
        alignment=TA_CENTER,
    )
    line_style = ParagraphStyle(
        "TicketLine",
        parent=styles["Normal"],
        fontName="Courier",
        fontSize=8,
        leading=10,
        textColor=DARK_COLOR,
    )
    detail_style = ParagraphStyle(
        "TicketDetail",
        parent=line_style,
        textColor=MUTED_COLOR,
        leftIndent=2 * mm,
    )
    amount_style = ParagraphStyle("TicketAmount", parent=line_style, alignment=TA_RIGHT)
    total_style = ParagraphStyle(
        "TicketTotal", parent=amount_style, fontName="Courier-Bold", fontSize=10
    )

    story = []

    # ===== HEADER =====
    story.append(Paragraph(escape(restaurant_name), header_style))
    story.append(Paragraph(f"Cliente: <b>{escape(sale.get('customer_name', ''))}</b>", center_style))
    story.append(Paragraph(f"Mesa: <b>{escape(sale.get('table_number', ''))}</b>", center_style))
    story.append(Paragraph(_format_date(sale["sale_date"]), center_style))
    if sale.get("user_name"):
        story.append(Paragraph(f"Vendido por: {escape(sale['user_name'])}", center_style))
    status_label = "Pagado" if sale.get("status") == "paid" else "Pendiente"
    story.append(Paragraph(f"COPIA DE TICKET - {status_label}", center_style))
    story.append(Spacer(1, 2 * mm))
    story.append(HRFlowable(width="100%", thickness=0.5, color=DARK_COLOR, dash=(2, 2)))

    # ===== ITEMS =====
    table_data = [[Paragraph("<b>Producto</b>", line_style), Paragraph("<b>Total</b>", amount_style)]]
    for item in items:
        quantity = int(item.get("quantity", 0))
        price = Decimal(str(item.get("price", 0)))
        table_data.append([
            [
                Paragraph(escape(item.get("name", "-")), line_style),
                Paragraph(f"{quantity} x {_money(price)}", detail_style),
            ],
            Paragraph(_money(price * quantity), amount_style),
        ])

    items_table = Table(table_data, colWidths=[52 * mm, 20 * mm])
    items_table.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
        ("LINEBELOW", (0, 0), (-1, 0), 0.5, DARK_COLOR),
    ]))
    story.append(items_table)
    story.append(HRFlowable(width="100%", thickness=0.5, color=DARK_COLOR, dash=(2, 2)))

    # ===== TOTAL =====
    totals_table = Table(
        [[Paragraph("<b>TOTAL:</b>", total_style), Paragraph(_money(sale.get("total_price", 0)), total_style)]],
        colWidths=[40 * mm, 32 * mm],
    )
    totals_table.setStyle(TableStyle([
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
    ]))
    story.append(totals_table)

    # ===== FOOTER =====
    story.append(Spacer(1, 4 * mm))
    story.append(Paragraph("¡Gracias por su visita!", center_style))
    story.append(Paragraph(f"Ticket {sale.get('id', '')}", center_style))

    doc.build(story)
    buffer.seek(0)
    return buffer
