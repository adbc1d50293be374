"""Fill the official Form 3115 template from a filing.

The field map is a JSON resource tied to one template revision. Each part
maps its field names onto AcroForm fields through one of three bindings:

    {"field": "<pdf field>", "fallback": "client.name"}
        Text copied from the part, or from the filing/client when the part
        leaves it blank.
    {"field": "<pdf field>", "join": [{"source": "filerCity", ...}, ...]}
        Several sources joined with ", ", empty ones omitted.
    {"checkboxes": {"yes": "<pdf field>", "no": "<pdf field>"}}
        The box whose key equals the normalized value is checked.

Missing or malformed stored data never fails generation. Only an unreadable
template (or field map) raises.
"""

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from form3115_preparer.domain.entities import Client, Filing
from form3115_preparer.domain.payloads import load_stored_part
from form3115_preparer.domain.value_objects import FormPart
from form3115_preparer.exceptions import FieldMapError, PdfTemplateError
from form3115_preparer.logging_config import filing_context, get_logger
from form3115_preparer.services.statement import build_statement

logger = get_logger(__name__)

JOIN_SEPARATOR = ", "
CHECKED_STATE = "/Yes"
UNCHECKED_STATE = "/Off"

_FALLBACK_PATTERN = re.compile(r"^(client|filing)\.([a-z_][a-z0-9_]*)$")
_FILENAME_UNSAFE = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class Source:
    key: str
    fallback: str | None = None


@dataclass(frozen=True)
class Binding:
    """How one internal field lands on the template."""

    key: str
    target: str | None = None
    sources: tuple[Source, ...] = ()
    checkboxes: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_checkbox(self) -> bool:
        return bool(self.checkboxes)

    @property
    def targets(self) -> list[str]:
        if self.is_checkbox:
            return list(self.checkboxes.values())
        return [self.target] if self.target else []


@dataclass(frozen=True)
class FieldMap:
    template_revision: str
    parts: Mapping[FormPart, tuple[Binding, ...]]

    @property
    def target_fields(self) -> list[str]:
        return [
            target
            for bindings in self.parts.values()
            for binding in bindings
            for target in binding.targets
        ]

    @classmethod
    def load(cls, path: str | Path) -> "FieldMap":
        path = Path(path)
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise FieldMapError(str(path), exc.strerror or str(exc)) from exc
        except json.JSONDecodeError as exc:
            raise FieldMapError(str(path), f"not valid JSON ({exc.msg})") from exc
        return cls.from_document(document, source=str(path))

    @classmethod
    def from_document(cls, document: Any, source: str = "<memory>") -> "FieldMap":
        if not isinstance(document, dict) or not isinstance(
            document.get("parts"), dict
        ):
            raise FieldMapError(source, "expected an object with a 'parts' object")

        parts: dict[FormPart, tuple[Binding, ...]] = {}
        for part_tag, entries in document["parts"].items():
            try:
                part = FormPart(part_tag)
            except ValueError:
                raise FieldMapError(source, f"unknown part {part_tag!r}") from None
            if not isinstance(entries, dict):
                raise FieldMapError(source, f"bindings for {part_tag} must be an object")
            parts[part] = tuple(
                _parse_binding(source, part_tag, key, entry)
                for key, entry in entries.items()
            )
        return cls(
            template_revision=str(document.get("templateRevision", "unknown")),
            parts=parts,
        )


def _parse_binding(source: str, part_tag: str, key: str, entry: Any) -> Binding:
    where = f"{part_tag}.{key}"
    if not isinstance(entry, dict):
        raise FieldMapError(source, f"{where}: binding must be an object")

    if "checkboxes" in entry:
        boxes = entry["checkboxes"]
        if not isinstance(boxes, dict) or not boxes:
            raise FieldMapError(source, f"{where}: checkboxes must be a non-empty object")
        return Binding(
            key=key,
            checkboxes={str(option).lower(): str(name) for option, name in boxes.items()},
        )

    target = entry.get("field")
    if not isinstance(target, str) or not target:
        raise FieldMapError(source, f"{where}: missing target field")

    if "join" in entry:
        items = entry["join"]
        if not isinstance(items, list) or not items:
            raise FieldMapError(source, f"{where}: join must be a non-empty list")
        sources = tuple(
            Source(
                key=item["source"],
                fallback=_checked_fallback(source, where, item.get("fallback")),
            )
            if isinstance(item, dict)
            else Source(key=str(item))
            for item in items
        )
    else:
        sources = (
            Source(key=key, fallback=_checked_fallback(source, where, entry.get("fallback"))),
        )
    return Binding(key=key, target=target, sources=sources)


def _checked_fallback(source: str, where: str, fallback: Any) -> str | None:
    if fallback is None:
        return None
    if not isinstance(fallback, str) or not _FALLBACK_PATTERN.match(fallback):
        raise FieldMapError(
            source, f"{where}: fallback must look like client.<attr> or filing.<attr>"
        )
    return fallback


@dataclass
class FieldMapReport:
    """Result of checking the field map against a template's fields."""

    template_revision: str
    matched: list[str] = field(default_factory=list)
    missing_in_template: list[str] = field(default_factory=list)
    unmapped_template_fields: int = 0

    @property
    def is_complete(self) -> bool:
        return not self.missing_in_template

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_revision": self.template_revision,
            "matched": len(self.matched),
            "missing_in_template": list(self.missing_in_template),
            "unmapped_template_fields": self.unmapped_template_fields,
        }


def compare_field_map(
    template_fields: Iterable[str], field_map: FieldMap
) -> FieldMapReport:
    available = set(template_fields)
    targets = list(dict.fromkeys(field_map.target_fields))
    matched = [name for name in targets if name in available]
    missing = [name for name in targets if name not in available]
    return FieldMapReport(
        template_revision=field_map.template_revision,
        matched=matched,
        missing_in_template=missing,
        unmapped_template_fields=len(available - set(targets)),
    )


def verify_field_map(template_path: str | Path, field_map: FieldMap) -> FieldMapReport:
    """Diff the field map's targets against the template's actual fields."""
    reader = _read_template(Path(template_path))
    report = compare_field_map((reader.get_fields() or {}).keys(), field_map)
    if report.is_complete:
        logger.info(
            "field_map_verified",
            template_revision=report.template_revision,
            matched=len(report.matched),
        )
    else:
        logger.warning(
            "field_map_incomplete",
            template_revision=report.template_revision,
            missing=report.missing_in_template,
        )
    return report


def pdf_filename(client_name: str, tax_year: int) -> str:
    """Download name with every non-alphanumeric character replaced by ``_``."""
    return f"Form3115_{_FILENAME_UNSAFE.sub('_', client_name)}_{tax_year}.pdf"


def _read_template(path: Path) -> PdfReader:
    try:
        return PdfReader(BytesIO(path.read_bytes()))
    except OSError as exc:
        raise PdfTemplateError(str(path), exc.strerror or str(exc)) from exc
    except PyPdfError as exc:
        raise PdfTemplateError(str(path), str(exc)) from exc


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, list):
        return JOIN_SEPARATOR.join(str(item) for item in value if not _is_blank(item))
    return str(value).strip()


class PdfGenerator:
    def __init__(
        self,
        template_path: str | Path,
        field_map: FieldMap,
        attach_statement: bool = True,
    ) -> None:
        self._template_path = Path(template_path)
        self._field_map = field_map
        self._attach_statement = attach_statement

    @property
    def template_path(self) -> Path:
        return self._template_path

    @property
    def field_map(self) -> FieldMap:
        return self._field_map

    def verify(self) -> FieldMapReport:
        return verify_field_map(self._template_path, self._field_map)

    def generate(self, filing: Filing, client: Client) -> bytes:
        """Return the filled form as PDF bytes.

        Raises:
            PdfTemplateError: If the template cannot be loaded or has no
                AcroForm to fill.
        """
        with filing_context(filing.id, tax_year=filing.tax_year):
            writer = self._load_writer()
            documents = {
                part: load_stored_part(part, filing.payload_text(part)).to_document()
                for part in FormPart
            }

            text_values, checkbox_values = self.field_values(filing, client, documents)
            available = writer.get_fields() or {}
            self._fill(writer, available, text_values, checkbox_values)

            if self._attach_statement:
                statement = build_statement(filing, client, documents)
                if statement is not None:
                    writer.append(PdfReader(BytesIO(statement)))

            output = BytesIO()
            writer.write(output)
            data = output.getvalue()
            logger.info(
                "pdf_generated",
                fields=len(text_values) + len(checkbox_values),
                size=len(data),
            )
            return data

    def field_values(
        self,
        filing: Filing,
        client: Client,
        documents: Mapping[FormPart, Mapping[str, Any]],
    ) -> tuple[dict[str, str], dict[str, bool]]:
        """Resolve every binding into text values and checkbox states.

        Bindings whose sources are all blank are left out so the template
        default stays in place.
        """
        text_values: dict[str, str] = {}
        checkbox_values: dict[str, bool] = {}
        for part, bindings in self._field_map.parts.items():
            document = documents.get(part, {})
            for binding in bindings:
                if binding.is_checkbox:
                    value = document.get(binding.key)
                    if _is_blank(value):
                        continue
                    selected = _as_text(value).lower()
                    for option, target in binding.checkboxes.items():
                        checkbox_values[target] = option == selected
                    continue

                pieces = [
                    self._resolve(source, document, filing, client)
                    for source in binding.sources
                ]
                text = JOIN_SEPARATOR.join(piece for piece in pieces if piece)
                if text and binding.target:
                    text_values[binding.target] = text
        return text_values, checkbox_values

    def _resolve(
        self,
        source: Source,
        document: Mapping[str, Any],
        filing: Filing,
        client: Client,
    ) -> str:
        value = document.get(source.key)
        if _is_blank(value) and source.fallback:
            owner, _, attr = source.fallback.partition(".")
            value = getattr(client if owner == "client" else filing, attr, None)
        return "" if _is_blank(value) else _as_text(value)

    def _load_writer(self) -> PdfWriter:
        reader = _read_template(self._template_path)
        writer = PdfWriter(clone_from=reader)
        if "/AcroForm" not in writer.root_object:
            raise PdfTemplateError(str(self._template_path), "template has no AcroForm")
        acro_form = writer.root_object["/AcroForm"]
        # Viewers that find XFA render it instead of the AcroForm values
        if "/XFA" in acro_form:
            del acro_form["/XFA"]
            logger.debug("pdf_xfa_removed")
        writer.set_need_appearances_writer(True)
        return writer

    def _fill(
        self,
        writer: PdfWriter,
        available: Mapping[str, Any],
        text_values: Mapping[str, str],
        checkbox_values: Mapping[str, bool],
    ) -> None:
        updates: dict[str, str] = {}
        for name, text in text_values.items():
            if name not in available:
                logger.warning("pdf_field_missing", field=name, kind="text")
                continue
            updates[name] = text

        for name, checked in checkbox_values.items():
            if name not in available:
                logger.warning("pdf_field_missing", field=name, kind="checkbox")
                continue
            updates[name] = (
                self._checked_state(available[name]) if checked else UNCHECKED_STATE
            )

        if not updates:
            return
        # None leaves the NeedAppearances flag from _load_writer in place
        for page in writer.pages:
            writer.update_page_form_field_values(page, updates, auto_regenerate=None)

    def _checked_state(self, pdf_field: Mapping[str, Any]) -> str:
        """The checkbox's own "on" appearance name; IRS forms use /1, /2 and so on."""
        for state in pdf_field.get("/_States_", []):
            if str(state) != UNCHECKED_STATE:
                return str(state)
        return CHECKED_STATE
