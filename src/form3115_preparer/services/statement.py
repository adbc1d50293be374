"""Attachment statement appended after the form pages.

Form 3115 asks for several answers "on an attached statement" rather than in
form fields: the description of the change, the Part III explanations and the
per-year Section 481(a) schedule. This module lays those out with ReportLab.
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from form3115_preparer.domain.entities import Client, Filing
from form3115_preparer.domain.value_objects import FormPart
from form3115_preparer.services.validation import format_currency

# (field, label) pairs printed for Part II
CHANGE_ITEMS = (
    ("dcn", "Designated change number"),
    ("presentMethod", "Present method of accounting"),
    ("proposedMethod", "Proposed method of accounting"),
    ("changeDescription", "Description of the change"),
    ("yearOfChangeReason", "Reason for the year of change"),
)

NARRATIVE_ITEMS = (
    ("priorMethodChangeYear", "Year of prior change"),
    ("priorMethodChangeDcn", "DCN of prior change"),
    ("transactionAdjustmentDetails", "Transaction adjustment"),
    ("parentName", "Parent of consolidated group"),
    ("relatedEntitiesDetails", "Related entities"),
    ("booksAndRecordsExplanation", "Books and records"),
    ("priorRequestDetails", "Prior requests"),
    ("examiningOffice", "Examining office"),
    ("additionalInfo", "Additional information"),
)

YEAR_KEYS = ("yearOneAmount", "yearTwoAmount", "yearThreeAmount", "yearFourAmount")


def _money(value: Any) -> str:
    try:
        return format_currency(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return str(value)


class StatementBuilder:
    def __init__(self) -> None:
        self._styles = getSampleStyleSheet()
        self._styles.add(
            ParagraphStyle(
                "StatementTitle",
                parent=self._styles["Title"],
                fontSize=14,
                spaceAfter=4,
            )
        )
        self._styles.add(
            ParagraphStyle(
                "StatementHeading",
                parent=self._styles["Heading2"],
                fontSize=11,
                spaceBefore=10,
                spaceAfter=4,
            )
        )
        self._styles.add(
            ParagraphStyle(
                "ItemLabel",
                parent=self._styles["Normal"],
                fontName="Helvetica-Bold",
                fontSize=9,
            )
        )
        self._styles.add(
            ParagraphStyle(
                "ItemText",
                parent=self._styles["Normal"],
                fontSize=9,
                leading=12,
                spaceAfter=4,
            )
        )

    def build(
        self,
        filing: Filing,
        client: Client,
        documents: Mapping[FormPart, Mapping[str, Any]],
    ) -> bytes | None:
        """Render the statement, or return None when it would be empty."""
        sections = [
            *self._items_section(
                "Part II - Change in Method of Accounting",
                documents.get(FormPart.PART_II, {}),
                CHANGE_ITEMS,
            ),
            *self._items_section(
                "Part III - Explanations",
                documents.get(FormPart.PART_III, {}),
                NARRATIVE_ITEMS,
            ),
            *self._adjustment_section(documents.get(FormPart.PART_IV, {})),
        ]
        if not sections:
            return None

        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            leftMargin=inch,
            rightMargin=inch,
            topMargin=0.75 * inch,
            bottomMargin=0.75 * inch,
            title=f"Form 3115 statement - {client.name}",
        )
        story = [
            Paragraph("Form 3115 - Attached Statement", self._styles["StatementTitle"]),
            Paragraph(
                escape(f"{client.name}  |  EIN {client.ein or 'not provided'}  |  "
                       f"Tax year {filing.tax_year}"),
                self._styles["ItemText"],
            ),
            Spacer(1, 6),
            *sections,
        ]
        doc.build(story)
        return buffer.getvalue()

    def _items_section(
        self,
        heading: str,
        document: Mapping[str, Any],
        items: tuple[tuple[str, str], ...],
    ) -> list[Any]:
        flowables: list[Any] = []
        for key, label in items:
            value = document.get(key)
            if value in (None, ""):
                continue
            flowables.append(Paragraph(escape(label), self._styles["ItemLabel"]))
            flowables.append(
                Paragraph(
                    escape(str(value)).replace("\n", "<br/>"),
                    self._styles["ItemText"],
                )
            )
        if not flowables:
            return []
        return [Paragraph(escape(heading), self._styles["StatementHeading"]), *flowables]

    def _adjustment_section(self, document: Mapping[str, Any]) -> list[Any]:
        if document.get("adjustmentAmount") in (None, ""):
            return []

        rows = [["Year", "Amount recognized"]]
        for index, key in enumerate(YEAR_KEYS, start=1):
            if document.get(key) not in (None, ""):
                rows.append([f"Year {index}", _money(document[key])])
        rows.append(["Total adjustment", _money(document["adjustmentAmount"])])

        table = Table(rows, colWidths=[2.5 * inch, 2 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 9),
                    ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                    ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.black),
                    ("LINEABOVE", (0, -1), (-1, -1), 0.5, colors.black),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
                ]
            )
        )

        direction = document.get("adjustmentDirection", "positive")
        spread = document.get("spreadPeriod", 1)
        summary = (
            f"Section 481(a) adjustment ({direction}), recognized over "
            f"{spread} year{'s' if spread != 1 else ''}."
        )
        return [
            Paragraph("Part IV - Section 481(a) Adjustment", self._styles["StatementHeading"]),
            Paragraph(escape(summary), self._styles["ItemText"]),
            table,
        ]


def build_statement(
    filing: Filing,
    client: Client,
    documents: Mapping[FormPart, Mapping[str, Any]],
) -> bytes | None:
    return StatementBuilder().build(filing, client, documents)
