"""
Decoder Registry

Central registry for binary file decoders. Decoders are looked up by id,
or picked by file suffix when no decoder is requested explicitly.
"""

import logging

from pathlib import Path

from pamr.binaries.base import BinaryDecoder
from pamr.errors import DecoderError

logger = logging.getLogger(__name__)


class DecoderRegistry:
    """Registry of available binary decoders, in registration order."""

    def __init__(self) -> None:
        self._decoders: list[BinaryDecoder] = []
        self._decoders_by_id: dict[str, BinaryDecoder] = {}

    def register(self, decoder: BinaryDecoder) -> None:
        """
        Register a new decoder.

        Raises:
            ValueError: If the decoder id is already registered
        """
        decoder_id = decoder.decoder_id
        if decoder_id in self._decoders_by_id:
            existing = self._decoders_by_id[decoder_id]
            raise ValueError(
                f"Decoder ID '{decoder_id}' already registered by {existing.__class__.__name__}"
            )
        self._decoders.append(decoder)
        self._decoders_by_id[decoder_id] = decoder
        logger.debug(f"Registered decoder: {decoder_id}")

    def unregister(self, decoder_id: str) -> bool:
        """
        Unregister a decoder by id.

        Returns:
            True if the decoder was removed, False if not found
        """
        decoder = self._decoders_by_id.pop(decoder_id, None)
        if decoder is None:
            return False
        self._decoders.remove(decoder)
        return True

    def get_decoder(self, decoder_id: str) -> BinaryDecoder | None:
        return self._decoders_by_id.get(decoder_id)

    def detect_decoder(self, path: Path) -> BinaryDecoder | None:
        """Return the first registered decoder that handles this file."""
        for decoder in self._decoders:
            if decoder.can_decode(Path(path)):
                return decoder
        return None

    def list_decoders(self) -> list[BinaryDecoder]:
        return self._decoders.copy()

    def __contains__(self, decoder_id: object) -> bool:
        return decoder_id in self._decoders_by_id

    def __len__(self) -> int:
        return len(self._decoders)

    def __repr__(self) -> str:
        return f"<DecoderRegistry decoders={len(self)}>"


decoder_registry = DecoderRegistry()


def register_default_decoders() -> None:
    """Register the decoders that ship with PAMr. Safe to call repeatedly."""
    from pamr.binaries.json_decoder import JsonBinaryDecoder

    if JsonBinaryDecoder.DECODER_ID not in decoder_registry:
        decoder_registry.register(JsonBinaryDecoder())


def resolve_decoder(path: Path, decoder: BinaryDecoder | None = None) -> BinaryDecoder:
    """
    Pick the decoder for a binary file.

    Args:
        path: Binary file to decode
        decoder: Explicit decoder; returned unchanged if given

    Returns:
        BinaryDecoder able to read the file

    Raises:
        DecoderError: If no registered decoder handles the file
    """
    if decoder is not None:
        return decoder
    found = decoder_registry.detect_decoder(path)
    if found is None:
        raise DecoderError(f"No decoder available for binary file {path}", str(path))
    return found
