"""Minimal single-page PDF container around a JPEG image.

Pillow can write PDFs, but the container is assembled here so the object
layout is fixed and checkable: an image XObject, a content stream that
paints it over the whole page, one Page, a Pages tree and a Catalog,
followed by a cross-reference table and trailer.
"""

import re

import structlog

from i3f.core.exceptions import InternalServerError

logger = structlog.get_logger()

_REFERENCE_RE = re.compile(rb"(\d+) 0 R\b")

PDF_HEADER = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n"


class PdfBuilder:
    def __init__(self) -> None:
        self._objects: list[bytes | None] = []

    @property
    def object_count(self) -> int:
        return len(self._objects)

    def reserve(self) -> int:
        self._objects.append(None)
        return len(self._objects)

    def set(self, obj_id: int, body: bytes) -> None:
        self._objects[obj_id - 1] = body

    def add(self, body: bytes) -> int:
        obj_id = self.reserve()
        self.set(obj_id, body)
        return obj_id

    @staticmethod
    def stream(entries: str, data: bytes) -> bytes:
        prefix = f"{entries} " if entries else ""
        return f"<< {prefix}/Length {len(data)} >>\nstream\n".encode("ascii") + data + b"\nendstream"

    def build(self, root_id: int) -> bytes:
        self._check_references(root_id)
        out = bytearray(PDF_HEADER)
        offsets = []
        for obj_id, body in enumerate(self._objects, start=1):
            assert body is not None
            offsets.append(len(out))
            out += f"{obj_id} 0 obj\n".encode("ascii") + body + b"\nendobj\n"

        xref_offset = len(out)
        size = self.object_count + 1
        out += f"xref\n0 {size}\n".encode("ascii")
        out += b"0000000000 65535 f \n"
        for offset in offsets:
            out += f"{offset:010d} 00000 n \n".encode("ascii")
        out += f"trailer\n<< /Size {size} /Root {root_id} 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode("ascii")
        return bytes(out)

    def _check_references(self, root_id: int) -> None:
        if not 1 <= root_id <= self.object_count:
            raise InternalServerError(f"PDF root object {root_id} does not exist")
        for obj_id, body in enumerate(self._objects, start=1):
            if body is None:
                raise InternalServerError(f"PDF object {obj_id} was reserved but never written")
            # only the dictionary part can hold references, stream data is opaque
            head = body.split(b"stream\n", 1)[0]
            for match in _REFERENCE_RE.finditer(head):
                ref = int(match.group(1))
                if not 1 <= ref <= self.object_count:
                    raise InternalServerError(f"PDF object {obj_id} references missing object {ref}")


def build_image_pdf(jpeg_data: bytes, width: int, height: int) -> bytes:
    pdf = PdfBuilder()
    image_id = pdf.reserve()
    content_id = pdf.reserve()
    page_id = pdf.reserve()
    pages_id = pdf.reserve()
    catalog_id = pdf.reserve()

    pdf.set(
        image_id,
        PdfBuilder.stream(
            f"/Type /XObject /Subtype /Image /Width {width} /Height {height} "
            "/ColorSpace /DeviceRGB /BitsPerComponent 8 /Filter /DCTDecode",
            jpeg_data,
        ),
    )
    pdf.set(content_id, PdfBuilder.stream("", f"q\n{width} 0 0 {height} 0 0 cm\n/Im0 Do\nQ".encode("ascii")))
    pdf.set(
        page_id,
        (
            f"<< /Type /Page /Parent {pages_id} 0 R /MediaBox [0 0 {width} {height}] "
            f"/Resources << /XObject << /Im0 {image_id} 0 R >> >> /Contents {content_id} 0 R >>"
        ).encode("ascii"),
    )
    pdf.set(pages_id, f"<< /Type /Pages /Kids [{page_id} 0 R] /Count 1 >>".encode("ascii"))
    pdf.set(catalog_id, f"<< /Type /Catalog /Pages {pages_id} 0 R >>".encode("ascii"))

    data = pdf.build(root_id=catalog_id)
    logger.debug("pdf_built", width=width, height=height, size=len(data))
    return data
