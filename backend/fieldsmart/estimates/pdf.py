"""PDF generation for estimates using ReportLab."""

import io
from decimal import Decimal
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    KeepTogether,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from fieldsmart.customers.models import Address
from fieldsmart.estimates.models import Estimate, EstimateOption
from fieldsmart.estimates.pricing import DiscountType

HEADER_COLOR = colors.HexColor("#1e3a5f")
TABLE_HEADER_BG = colors.HexColor("#f1f5f9")
TABLE_HEADER_TEXT = colors.HexColor("#334155")
GRID_COLOR = colors.HexColor("#e2e8f0")


def _money(value: Decimal) -> str:
    if value < 0:
        return f"-${-value:,.2f}"
    return f"${value:,.2f}"


def _address_lines(address: Address | None) -> list[str]:
    if address is None:
        return []
    lines = [address.street]
    if address.street_line2:
        lines.append(address.street_line2)
    lines.append(f"{address.city}, {address.state} {address.zip}")
    return [escape(line) for line in lines]


def _option_block(option: EstimateOption, tax_rate: Decimal, styles) -> list:
    totals = option.totals(tax_rate).rounded()
    heading = escape(option.name)
    if option.is_recommended:
        heading += " (Recommended)"

    block: list = [Paragraph(f"<b>{heading}</b>", styles["Heading3"])]
    if option.description:
        block.append(Paragraph(escape(option.description), styles["Normal"]))
        block.append(Spacer(1, 6))

    table_data = [["Item", "Qty", "Unit Price", "Total"]]
    for li in option.line_items:
        name = li.name
        if li.is_optional:
            name += " (optional)"
        table_data.append([
            name,
            f"{li.quantity.normalize():f}",
            _money(li.unit_price),
            _money(li.total),
        ])

    items_table = Table(
        table_data, colWidths=[3.5 * inch, 1 * inch, 1.25 * inch, 1.25 * inch],
    )
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), TABLE_HEADER_BG),
        ("TEXTCOLOR", (0, 0), (-1, 0), TABLE_HEADER_TEXT),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("GRID", (0, 0), (-1, -1), 0.5, GRID_COLOR),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ("LEFTPADDING", (0, 0), (-1, -1), 8),
        ("RIGHTPADDING", (0, 0), (-1, -1), 8),
    ]))
    block.append(items_table)
    block.append(Spacer(1, 8))

    totals_data = [["Subtotal:", _money(totals.subtotal)]]
    if option.discount_type != DiscountType.NONE and totals.discount_amount:
        label = "Discount"
        if option.discount_type == DiscountType.PERCENTAGE:
            label += f" ({option.discount_value.normalize():f}%)"
        totals_data.append([f"{label}:", _money(-totals.discount_amount)])
    totals_data.append([f"Tax ({tax_rate.normalize():f}%):", _money(totals.tax_amount)])
    totals_data.append(["Option Total:", _money(totals.total)])

    totals_table = Table(totals_data, colWidths=[5.5 * inch, 1.5 * inch])
    totals_table.setStyle(TableStyle([
        ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ("LINEABOVE", (0, -1), (-1, -1), 1, TABLE_HEADER_TEXT),
    ]))
    block.append(totals_table)
    block.append(Spacer(1, 18))
    return [KeepTogether(block)]


def generate_estimate_pdf(estimate: Estimate, business_name: str = "FieldSmart") -> bytes:
    """Render an estimate with one section per option."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=f"Estimate {estimate.estimate_number}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "EstTitle", parent=styles["Title"], fontSize=24, textColor=HEADER_COLOR,
    )
    subtitle_style = ParagraphStyle(
        "EstSub", parent=styles["Normal"], fontSize=10, textColor=colors.grey,
    )
    normal_style = styles["Normal"]

    elements: list = []
    elements.append(Paragraph(escape(business_name), title_style))
    elements.append(Spacer(1, 6))
    elements.append(Paragraph(
        f"Estimate #{estimate.estimate_number} &middot; {escape(estimate.title)}",
        subtitle_style,
    ))
    elements.append(Spacer(1, 20))

    customer = estimate.customer
    prepared_for = [escape(customer.display_name)] if customer else []
    if customer and customer.email:
        prepared_for.append(escape(customer.email))
    service_at = _address_lines(estimate.address) or ["Not set"]

    details = [f"Status: {estimate.status.value.title()}"]
    if estimate.created_at:
        details.append(f"Date: {estimate.created_at.date()}")
    if estimate.valid_until:
        details.append(f"Valid Until: {estimate.valid_until}")

    info_table = Table(
        [
            [
                Paragraph("<b>Prepared For:</b>", normal_style),
                Paragraph("<b>Service Address:</b>", normal_style),
                Paragraph("<b>Estimate Details:</b>", normal_style),
            ],
            [
                Paragraph("<br/>".join(prepared_for), normal_style),
                Paragraph("<br/>".join(service_at), normal_style),
                Paragraph("<br/>".join(details), normal_style),
            ],
        ],
        colWidths=[2.35 * inch, 2.35 * inch, 2.3 * inch],
    )
    info_table.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 20))

    if estimate.message:
        elements.append(Paragraph(escape(estimate.message), normal_style))
        elements.append(Spacer(1, 16))

    for option in estimate.options:
        elements.extend(_option_block(option, estimate.tax_rate, styles))

    if len(estimate.options) > 1:
        elements.append(Paragraph(
            "Each option above is priced independently. Choose the one that suits you best.",
            subtitle_style,
        ))

    if estimate.terms_and_conditions:
        elements.append(Spacer(1, 20))
        elements.append(Paragraph("<b>Terms &amp; Conditions</b>", normal_style))
        elements.append(Spacer(1, 4))
        elements.append(Paragraph(escape(estimate.terms_and_conditions), normal_style))

    doc.build(elements)
    return buffer.getvalue()
