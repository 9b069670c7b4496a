"""PDF side of signing: finding signature fields, appending revisions, filling slots."""

from .builder import SignatureFieldSpec, append_revision_with_placeholder, insert_envelope
from .extraction import (
    ExtractedSignature,
    count_signatures,
    decode_pdf_string,
    list_signature_fields,
    parse_pdf_date,
)
from .incremental import (
    PreviousRevision,
    append_objects,
    patch_byte_range,
    read_previous_revision,
    resolve_page_index,
    xref_section,
)
from .objects import (
    ANNOT_FLAGS_SIG_WIDGET,
    BYTERANGE_PLACEHOLDER,
    SigObjectNums,
    allocate_sig_objects,
    pdf_date,
    pdf_text_string,
)

__all__ = [
    "ANNOT_FLAGS_SIG_WIDGET",
    "BYTERANGE_PLACEHOLDER",
    "ExtractedSignature",
    "PreviousRevision",
    "SigObjectNums",
    "SignatureFieldSpec",
    "allocate_sig_objects",
    "append_objects",
    "append_revision_with_placeholder",
    "count_signatures",
    "decode_pdf_string",
    "insert_envelope",
    "list_signature_fields",
    "parse_pdf_date",
    "patch_byte_range",
    "pdf_date",
    "pdf_text_string",
    "read_previous_revision",
    "resolve_page_index",
    "xref_section",
]
