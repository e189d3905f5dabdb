"""Excel and PDF exports for the Parcel Tracker.

Every builder returns the file as bytes so Streamlit can offer it through
``st.download_button``.
"""

import io
from datetime import date, datetime
from typing import Iterable, Optional
from urllib.parse import quote
from xml.sax.saxutils import escape

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .schemas import Parcel, Payment


PARCEL_EXPORT_COLUMNS = [
    "Date",
    "LR_Number",
    "Party",
    "State",
    "Weight",
    "Rate",
    "Total_Amount",
    "Paid_Amount",
    "Status",
    "Payment_Mode",
    "Weight_Image_URL",
]

PAYMENT_EXPORT_COLUMNS = [
    "Payment_Date",
    "Transport",
    "From_Date",
    "To_Date",
    "Amount",
    "Narration",
    "Signature_URL",
]

REPORT_HEADERS = ["Date", "LR No", "Party", "State", "Weight", "Amount", "Status", "Weight Img"]

BRAND_NAME = "ParcelTracker Pro"
BRAND_TAGLINE = "Professional Transport Management System"

# Colors matching the app theme
SLATE_900 = colors.HexColor("#0F172A")
SLATE_800 = colors.HexColor("#1E293B")
SLATE_400 = colors.HexColor("#94A3B8")
INDIGO_500 = colors.HexColor("#6366F1")
RED_700 = colors.HexColor("#B91C1C")
GREEN_700 = colors.HexColor("#15803D")


def _money(value: float) -> str:
    return f"Rs. {value:,.2f}"


def export_filename(prefix: str, extension: str, today: Optional[date] = None) -> str:
    """Build a dated download name such as ``Transport_Data_2024-01-31.xlsx``."""
    return f"{prefix}_{(today or date.today()).isoformat()}.{extension}"


# ============================================================================
# Excel
# ============================================================================


def parcels_to_dataframe(parcels: Iterable[Parcel]) -> pd.DataFrame:
    """Flatten parcels into the column layout shared by export and import."""
    rows = [
        {
            "Date": p.date,
            "LR_Number": p.lr_number,
            "Party": p.party_name,
            "State": p.state,
            "Weight": p.weight,
            "Rate": p.rate,
            "Total_Amount": p.total_amount,
            "Paid_Amount": p.paid_amount,
            "Status": p.status,
            "Payment_Mode": p.payment_mode,
            "Weight_Image_URL": p.weight_image_url or "",
        }
        for p in parcels
    ]
    return pd.DataFrame(rows, columns=PARCEL_EXPORT_COLUMNS)


def payments_to_dataframe(payments: Iterable[Payment]) -> pd.DataFrame:
    rows = [
        {
            "Payment_Date": p.payment_date,
            "Transport": p.transport_name,
            "From_Date": p.from_date,
            "To_Date": p.to_date,
            "Amount": p.amount,
            "Narration": p.narration,
            "Signature_URL": p.signature_image_url or "",
        }
        for p in payments
    ]
    return pd.DataFrame(rows, columns=PAYMENT_EXPORT_COLUMNS)


def _to_excel(df: pd.DataFrame, sheet_name: str) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


def export_parcels_excel(parcels: Iterable[Parcel]) -> bytes:
    """Export parcels to an .xlsx workbook with a single "Parcels" sheet."""
    return _to_excel(parcels_to_dataframe(parcels), "Parcels")


def export_payments_excel(payments: Iterable[Payment]) -> bytes:
    """Export payments to an .xlsx workbook with a single "Payments" sheet."""
    return _to_excel(payments_to_dataframe(payments), "Payments")


# ============================================================================
# PDF
# ============================================================================


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    body = ParagraphStyle(
        "Body",
        parent=base["BodyText"],
        fontName="Helvetica",
        fontSize=9,
        leading=12,
        textColor=SLATE_800,
    )
    return {
        "title": ParagraphStyle(
            "Title",
            parent=base["Heading1"],
            fontName="Helvetica-Bold",
            fontSize=16,
            spaceAfter=4,
            textColor=SLATE_900,
        ),
        "body": body,
        "link": ParagraphStyle("Link", parent=body, textColor=INDIGO_500),
        "small": ParagraphStyle("Small", parent=body, fontSize=8, textColor=SLATE_400),
        "banner": ParagraphStyle(
            "Banner",
            parent=body,
            fontName="Helvetica-Bold",
            fontSize=22,
            leading=26,
            textColor=colors.white,
        ),
        "banner_small": ParagraphStyle("BannerSmall", parent=body, textColor=colors.white),
        "footer": ParagraphStyle(
            "Footer",
            parent=body,
            fontName="Helvetica-Oblique",
            fontSize=8,
            alignment=1,
            textColor=SLATE_400,
        ),
    }


def export_parcels_pdf(parcels: Iterable[Parcel], generated: Optional[datetime] = None) -> bytes:
    """Build the "Transport Parcel Report" PDF.

    The "Weight Img" column holds a clickable "View" link for parcels with
    a stored weight image.

    Args:
        parcels: Parcels to list, in display order.
        generated: Timestamp printed under the title.

    Returns:
        PDF bytes.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
        title="Transport Parcel Report",
    )
    styles = _styles()
    generated = generated or datetime.now()

    rows: list[list] = [REPORT_HEADERS]
    for p in parcels:
        if p.weight_image_url:
            href = escape(p.weight_image_url, {'"': "&quot;"})
            link = Paragraph(f'<link href="{href}">View</link>', styles["link"])
        else:
            link = "-"
        rows.append([
            p.date,
            Paragraph(escape(p.lr_number), styles["body"]),
            Paragraph(escape(p.party_name), styles["body"]),
            p.state,
            f"{p.weight:g}",
            f"{p.total_amount:,.2f}",
            p.status,
            link,
        ])

    table = Table(rows, repeatRows=1, colWidths=[26 * mm, 30 * mm, 70 * mm, 32 * mm, 22 * mm, 30 * mm, 22 * mm, 22 * mm])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), INDIGO_500),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F1F5F9")]),
        ("BOX", (0, 0), (-1, -1), 0.35, colors.grey),
        ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ALIGN", (4, 1), (5, -1), "RIGHT"),
    ]))

    story = [
        Paragraph("Transport Parcel Report", styles["title"]),
        Paragraph(f"Generated: {generated.strftime('%d %b %Y')}", styles["small"]),
        Spacer(0, 6 * mm),
        table,
    ]
    doc.build(story)
    return buffer.getvalue()


def build_receipt_pdf(parcel: Parcel, generated: Optional[datetime] = None) -> bytes:
    """Build the one-page receipt offered after saving a parcel.

    Args:
        parcel: The saved parcel.
        generated: Timestamp printed in the footer.

    Returns:
        PDF bytes.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=f"Receipt {parcel.lr_number}",
    )
    styles = _styles()
    body = styles["body"]
    generated = generated or datetime.now()
    content_width = A4[0] - doc.leftMargin - doc.rightMargin

    try:
        receipt_date = date.fromisoformat(parcel.date).strftime("%d %b %Y")
    except ValueError:
        receipt_date = parcel.date

    banner = Table(
        [[
            [Paragraph(BRAND_NAME, styles["banner"]), Paragraph(BRAND_TAGLINE, styles["banner_small"])],
            Paragraph("<b>RECEIPT</b>", styles["banner_small"]),
        ]],
        colWidths=[content_width * 0.75, content_width * 0.25],
    )
    banner.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), SLATE_900),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ALIGN", (1, 0), (1, 0), "RIGHT"),
        ("LEFTPADDING", (0, 0), (-1, -1), 10),
        ("RIGHTPADDING", (0, 0), (-1, -1), 10),
        ("TOPPADDING", (0, 0), (-1, -1), 10),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 10),
    ]))

    parties = Table(
        [[
            [
                Paragraph("<b>BILL TO:</b>", body),
                Paragraph(escape(parcel.party_name), body),
                Paragraph(f"State: {escape(parcel.state)}", body),
            ],
            [
                Paragraph("<b>LR DETAILS:</b>", body),
                Paragraph(f"LR No: {escape(parcel.lr_number)}", body),
                Paragraph(f"Date: {receipt_date}", body),
                Paragraph(f"Transport: {escape(parcel.transport or 'N/A')}", body),
            ],
        ]],
        colWidths=[content_width * 0.55, content_width * 0.45],
    )
    parties.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))

    items = Table(
        [
            ["Description", "Weight (kg)", "Rate (Rs.)", "Total (Rs.)"],
            [
                f"Parcel Delivery to {parcel.state}",
                f"{parcel.weight:.2f}",
                f"{parcel.rate:.2f}",
                f"{parcel.total_amount:.2f}",
            ],
        ],
        colWidths=[content_width * 0.46, content_width * 0.18, content_width * 0.18, content_width * 0.18],
    )
    items.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), INDIGO_500),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("BACKGROUND", (0, 1), (-1, -1), colors.HexColor("#F1F5F9")),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
    ]))

    balance = parcel.balance
    summary = Table(
        [
            ["Summary", ""],
            ["Total Amount:", _money(parcel.total_amount)],
            ["Paid Amount:", _money(parcel.paid_amount)],
            ["Balance Due:", _money(balance)],
        ],
        colWidths=[content_width * 0.2, content_width * 0.2],
        hAlign="RIGHT",
    )
    summary.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME", (0, 3), (-1, 3), "Helvetica-Bold"),
        ("TEXTCOLOR", (0, 3), (-1, 3), RED_700 if balance > 0 else GREEN_700),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
    ]))

    story = [
        banner,
        Spacer(0, 8 * mm),
        parties,
        Spacer(0, 8 * mm),
        items,
        Spacer(0, 10 * mm),
        summary,
        Spacer(0, 40 * mm),
        Paragraph(
            "This is a computer-generated receipt and does not require a physical signature.",
            styles["footer"],
        ),
        Paragraph(f"Generated on {generated.strftime('%d/%m/%Y %H:%M')}", styles["footer"]),
    ]
    doc.build(story)
    return buffer.getvalue()


def receipt_filename(parcel: Parcel) -> str:
    return f"Receipt_{parcel.lr_number}_{parcel.party_name}.pdf".replace("/", "-")


# ============================================================================
# Sharing
# ============================================================================


def whatsapp_share_url(parcel: Parcel, app_url: Optional[str] = None) -> str:
    """Build a wa.me link announcing a booked parcel.

    Args:
        parcel: The saved parcel.
        app_url: Public URL of the app, appended as a tracking link.

    Returns:
        The share URL.
    """
    message = (
        f"Hello {parcel.party_name}, your parcel (LR: {parcel.lr_number}) has been booked.\n\n"
        f"Details:\n"
        f"Weight: {parcel.weight:g} kg\n"
        f"Amount: Rs. {parcel.total_amount:g}\n"
        f"Status: {parcel.status}"
    )
    if app_url:
        message += f"\n\nTrack here: {app_url.rstrip('/')}/?q={quote(parcel.lr_number)}"
    return f"https://wa.me/?text={quote(message)}"
