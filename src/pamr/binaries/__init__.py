"""Binary file decoding and matching for PAMr."""

from pamr.binaries.base import BinaryData, BinaryDecoder, BinaryRecord, DecoderMetadata
from pamr.binaries.registry import (
    decoder_registry,
    register_default_decoders,
    resolve_decoder,
)

__all__ = [
    "BinaryData",
    "BinaryDecoder",
    "BinaryRecord",
    "DecoderMetadata",
    "decoder_registry",
    "register_default_decoders",
    "resolve_decoder",
]
