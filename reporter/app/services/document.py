"""
Minimal single-page PDF writer for student reports.

The document is built by hand, without a layout engine. It always holds
the same five objects:

    1  Catalog   -> Pages
    2  Pages     -> Page
    3  Page      -> Pages (parent), Contents, Font
    4  Contents  text stream, one Td/Tj pair per line
    5  Font      Helvetica, WinAnsiEncoding

Serialization is a single pass. A running offset is threaded through
the writer and each object's start offset is recorded as it is written,
so the cross-reference table is exact by construction. Before the bytes
are returned the output is re-checked (object offsets, stream /Length,
trailer /Size). Any mismatch raises RenderInvariantError instead of
emitting a corrupt document.

Rendering is pure. It performs no I/O and holds no state between calls.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from reporter.app.core.errors import EncodeError, RenderInvariantError
from reporter.app.schemas.record import Record

# ---------------------------------------------------------------------------
# Layout constants
# ---------------------------------------------------------------------------

PAGE_WIDTH = 595
PAGE_HEIGHT = 842
LEFT_MARGIN = 72
TOP_BASELINE = 800
FONT_SIZE = 12
LEADING = 16

REPORT_TITLE = "STUDENT REPORT"
DIVIDER = "-" * 51

PDF_HEADER = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n"
TEXT_ENCODING = "cp1252"

# Object numbers by role
CATALOG = 1
PAGES = 2
PAGE = 3
CONTENTS = 4
FONT = 5

_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_REFERENCE_RE = re.compile(rb"(\d+) 0 R\b")
_LENGTH_RE = re.compile(rb"/Length (\d+)")
_SIZE_RE = re.compile(rb"/Size (\d+)")
_OBJECT_HEADER_RE = re.compile(rb"(\d+) (\d+) obj\n")
_XREF_ENTRY_RE = re.compile(rb"(\d{10}) (\d{5}) ([fn]) \n")

XREF_ENTRY_SIZE = 20


# ---------------------------------------------------------------------------
# Record flattening
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Section:
    title: str
    fields: Tuple[Tuple[str, str], ...]


def format_date(value: str) -> str:
    """
    Reformat an ISO-8601 timestamp as ``DD-Mon-YYYY``.

    Empty input yields empty output. A value that does not parse is
    returned unchanged.
    """
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return value
    return f"{parsed.day:02d}-{_MONTHS[parsed.month - 1]}-{parsed.year:04d}"


def format_timestamp(value: datetime) -> str:
    return (
        f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year:04d} "
        f"{value:%H:%M:%S}"
    )


def flatten_record(record: Record) -> List[Section]:
    """Group the record's display fields under the four report sections."""
    return [
        Section(
            "STUDENT INFORMATION",
            (
                ("ID", str(record.id)),
                ("Name", record.name),
                ("Email", record.email),
                ("Phone", record.phone),
                ("Class", record.class_name),
                ("Section", record.section),
                ("Roll Number", str(record.roll)),
                ("System Access", "true" if record.system_access else "false"),
            ),
        ),
        Section(
            "GUARDIAN INFORMATION",
            (
                ("Guardian Name", record.guardian_name),
                ("Guardian Phone", record.guardian_phone),
                ("Relationship", record.relation_of_guardian),
            ),
        ),
        Section(
            "ADDRESS INFORMATION",
            (
                ("Current Address", record.current_address),
                ("Permanent Address", record.permanent_address),
                ("Admission Date", format_date(record.admission_date)),
            ),
        ),
        Section(
            "REPORTED BY",
            (
                ("Reporter Name", record.reporter_name),
            ),
        ),
    ]


def report_lines(
    record: Record,
    generated_at: Optional[datetime] = None,
) -> List[str]:
    """Return the report's display lines in page order."""
    lines = [REPORT_TITLE]
    if generated_at is not None:
        lines.append(f"Generated on: {format_timestamp(generated_at)}")

    for section in flatten_record(record):
        lines.append(DIVIDER)
        lines.append(section.title)
        lines.extend(f"{label}: {value}" for label, value in section.fields)

    return lines


# ---------------------------------------------------------------------------
# Content stream
# ---------------------------------------------------------------------------

_LITERAL_ESCAPES = {
    0x5C: b"\\\\",
    0x28: b"\\(",
    0x29: b"\\)",
    0x0A: b"\\n",
    0x0D: b"\\r",
    0x09: b"\\t",
    0x08: b"\\b",
    0x0C: b"\\f",
}


def escape_text(text: str) -> bytes:
    """
    Encode ``text`` as the body of a PDF literal string.

    Delimiters and backslash are escaped, remaining control bytes are
    written as octal escapes. Characters outside WinAnsiEncoding cannot
    be shown with the standard font and raise EncodeError.
    """
    try:
        encoded = text.encode(TEXT_ENCODING)
    except UnicodeEncodeError as exc:
        raise EncodeError(
            f"character {exc.object[exc.start]!r} at position {exc.start} "
            f"has no {TEXT_ENCODING} encoding"
        ) from exc

    out = bytearray()
    for byte in encoded:
        escaped = _LITERAL_ESCAPES.get(byte)
        if escaped is not None:
            out += escaped
        elif byte < 0x20 or byte == 0x7F:
            out += b"\\%03o" % byte
        else:
            out.append(byte)
    return bytes(out)


def build_content_stream(lines: Sequence[str]) -> bytes:
    """One vertical advance followed by one text-show per line."""
    ops = [
        b"BT",
        b"/F1 %d Tf" % FONT_SIZE,
        b"%d %d Td" % (LEFT_MARGIN, TOP_BASELINE),
    ]
    for line in lines:
        ops.append(b"0 -%d Td" % LEADING)
        ops.append(b"(" + escape_text(line) + b") Tj")
    ops.append(b"ET")
    return b"\n".join(ops)


# ---------------------------------------------------------------------------
# Object graph
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PdfObject:
    """
    One indirect object.

    ``dictionary`` holds every reference the object makes. ``stream`` is
    opaque payload and is never inspected for object syntax.
    """

    number: int
    dictionary: bytes
    stream: Optional[bytes] = None

    @property
    def body(self) -> bytes:
        if self.stream is None:
            return self.dictionary
        return b"%s\nstream\n%s\nendstream" % (self.dictionary, self.stream)

    def serialize(self) -> bytes:
        return b"%d 0 obj\n%s\nendobj\n" % (self.number, self.body)


def _stream_object(number: int, data: bytes) -> PdfObject:
    return PdfObject(number, b"<< /Length %d >>" % len(data), data)


@dataclass(frozen=True)
class Document:
    """
    Ordered, immutable object list.

    Construction checks that ids run 1..n and that every indirect
    reference resolves inside the document.
    """

    objects: Tuple[PdfObject, ...]

    def __post_init__(self) -> None:
        numbers = [obj.number for obj in self.objects]
        if numbers != list(range(1, len(self.objects) + 1)):
            raise RenderInvariantError(
                f"object ids must run 1..{len(self.objects)}, got {numbers}"
            )
        for obj in self.objects:
            for match in _REFERENCE_RE.finditer(obj.dictionary):
                target = int(match.group(1))
                if not 1 <= target <= len(self.objects):
                    raise RenderInvariantError(
                        f"object {obj.number} references missing object {target}"
                    )

    @property
    def size(self) -> int:
        # objects plus the free-list head
        return len(self.objects) + 1


def build_document(lines: Sequence[str]) -> Document:
    """Assemble the five-object graph around a content stream."""
    return Document(
        (
            PdfObject(
                CATALOG,
                b"<< /Type /Catalog /Pages %d 0 R >>" % PAGES,
            ),
            PdfObject(
                PAGES,
                b"<< /Type /Pages /Kids [%d 0 R] /Count 1 >>" % PAGE,
            ),
            PdfObject(
                PAGE,
                b"<< /Type /Page /Parent %d 0 R "
                b"/MediaBox [0 0 %d %d] "
                b"/Contents %d 0 R "
                b"/Resources << /Font << /F1 %d 0 R >> >> >>"
                % (PAGES, PAGE_WIDTH, PAGE_HEIGHT, CONTENTS, FONT),
            ),
            _stream_object(CONTENTS, build_content_stream(lines)),
            PdfObject(
                FONT,
                b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica "
                b"/Encoding /WinAnsiEncoding >>",
            ),
        )
    )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

class _Writer:
    """Append-only byte buffer that knows its own length."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def offset(self) -> int:
        return len(self._buffer)

    def write(self, data: bytes) -> int:
        start = self.offset
        self._buffer += data
        return start

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


def serialize(document: Document) -> bytes:
    """Write header, objects, xref, and trailer in one pass."""
    writer = _Writer()
    writer.write(PDF_HEADER)

    # offsets[0] is the free-list head
    offsets = [0]
    for obj in document.objects:
        offsets.append(writer.write(obj.serialize()))

    xref_offset = writer.write(b"xref\n0 %d\n" % len(offsets))
    writer.write(b"%010d 65535 f \n" % offsets[0])
    for offset in offsets[1:]:
        writer.write(b"%010d 00000 n \n" % offset)

    writer.write(
        b"trailer\n<< /Size %d /Root %d 0 R >>\n" % (document.size, CATALOG)
    )
    writer.write(b"startxref\n%d\n%%%%EOF\n" % xref_offset)

    data = writer.getvalue()
    _check_output(document, data, offsets, xref_offset)
    return data


def _check_output(
    document: Document,
    data: bytes,
    offsets: Sequence[int],
    xref_offset: int,
) -> None:
    if len(offsets) != document.size:
        raise RenderInvariantError(
            f"recorded {len(offsets)} offsets for {document.size} xref entries"
        )

    for obj, offset in zip(document.objects, offsets[1:]):
        if not data.startswith(b"%d 0 obj\n" % obj.number, offset):
            raise RenderInvariantError(
                f"xref offset {offset} does not start object {obj.number}"
            )

    if not data.startswith(b"xref\n", xref_offset):
        raise RenderInvariantError(
            f"startxref {xref_offset} does not point at the xref section"
        )

    contents = document.objects[CONTENTS - 1]
    declared = _LENGTH_RE.search(contents.dictionary)
    stream_start = (
        offsets[CONTENTS]
        + len(b"%d 0 obj\n" % contents.number)
        + len(contents.dictionary)
        + len(b"\nstream\n")
    )
    stream_end = stream_start + len(contents.stream or b"")
    if (
        declared is None
        or int(declared.group(1)) != len(contents.stream or b"")
        or data[stream_start:stream_end] != contents.stream
        or not data.startswith(b"\nendstream\nendobj\n", stream_end)
    ):
        raise RenderInvariantError(
            "content stream /Length does not match its body length"
        )

    size = _SIZE_RE.search(data, xref_offset)
    if size is None or int(size.group(1)) != document.size:
        raise RenderInvariantError(
            f"trailer /Size does not equal {document.size}"
        )


def render_record(
    record: Record,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """
    Render a record as a single-page PDF.

    Output is fully determined by ``record`` and ``generated_at``.

    Raises:
        EncodeError: a text value has characters outside WinAnsiEncoding.
        RenderInvariantError: the serialized output failed its self-check.
    """
    return serialize(build_document(report_lines(record, generated_at)))


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def read_objects(data: bytes) -> List[Tuple[int, bytes]]:
    """
    Recover ``(number, body)`` pairs using only startxref and the xref table.

    Understands exactly the subset of PDF that ``serialize`` writes: one
    xref subsection starting at 0 with fixed-width entries. Raises
    ValueError on anything else.
    """
    marker = data.rfind(b"startxref\n")
    if marker < 0:
        raise ValueError("startxref not found")
    xref_offset = int(data[marker + len(b"startxref\n"):].split(b"\n", 1)[0])

    if not data.startswith(b"xref\n", xref_offset):
        raise ValueError(f"no xref section at offset {xref_offset}")
    cursor = xref_offset + len(b"xref\n")
    header_end = data.index(b"\n", cursor)
    first, count = (int(part) for part in data[cursor:header_end].split())
    if first != 0:
        raise ValueError("xref subsection must start at object 0")
    cursor = header_end + 1

    objects = []
    for number, entry in enumerate(_xref_entries(data, cursor, count)):
        offset, _generation, kind = entry
        if kind == b"f":
            continue
        header = _OBJECT_HEADER_RE.match(data, offset)
        if header is None or int(header.group(1)) != number:
            raise ValueError(f"xref entry {number} does not point at its object")
        body_start = header.end()
        body_end = data.index(b"\nendobj\n", body_start)
        objects.append((number, data[body_start:body_end]))
    return objects


def _xref_entries(
    data: bytes,
    start: int,
    count: int,
) -> Iterable[Tuple[int, int, bytes]]:
    for index in range(count):
        position = start + index * XREF_ENTRY_SIZE
        match = _XREF_ENTRY_RE.fullmatch(
            data, position, position + XREF_ENTRY_SIZE
        )
        if match is None:
            raise ValueError(f"malformed xref entry {index}")
        yield int(match.group(1)), int(match.group(2)), match.group(3)
