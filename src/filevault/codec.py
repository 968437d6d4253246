"""Record codec - wraps payloads in an identity and integrity envelope.

A stored record looks like::

    {"id": ..., "data": ..., "metadata": {...}, "checksum": "...", "version": "1.0.0"}

The envelope is serialized according to the record format and then passed
through a reversible transport encoding (utf8, base64url or hex). Transport
encoding is not encryption.
"""

import base64
import binascii
import hashlib
import json
import logging
from typing import Any

from pydantic_core import PydanticSerializationError, to_jsonable_python

from filevault.errors import RecordDecodeError
from filevault.types import (
    RECORD_VERSION,
    DecodedRecord,
    DecodePolicy,
    RecordFormat,
    TransportEncoding,
)

logger = logging.getLogger(__name__)

CHECKSUM_LENGTH = 16


def to_jsonable(value: Any) -> Any:
    """Normalise a value to plain JSON types.

    datetimes become ISO 8601 strings, pydantic models and dataclasses become
    dicts, tuples and sets become lists.
    """
    try:
        return to_jsonable_python(value)
    except PydanticSerializationError as e:
        raise TypeError(f"Value is not JSON serializable: {e}") from e


def ensure_string_keys(value: Any, where: str = "data") -> None:
    """Reject mappings with non-string keys, which JSON would silently stringify.

    Raises:
        TypeError: If any nested dict has a key that is not a ``str``.
    """
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(
                    f"{where} keys must be strings, got {type(key).__name__} key {key!r}"
                )
            ensure_string_keys(item, where)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            ensure_string_keys(item, where)


def checksum(data: Any) -> str:
    """Short non-cryptographic fingerprint of ``data`` for display.

    Truncated SHA-256 of the canonical (sorted-key, compact) JSON form.
    """
    canonical = json.dumps(
        to_jsonable(data), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:CHECKSUM_LENGTH]


def encode_transport(text: str, encoding: TransportEncoding) -> str:
    """Apply a reversible transport encoding to serialized text."""
    if encoding == TransportEncoding.BASE64:
        return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")
    if encoding == TransportEncoding.HEX:
        return text.encode("utf-8").hex()
    return text


def decode_transport(content: str, encoding: TransportEncoding) -> str:
    """Reverse ``encode_transport``.

    Raises:
        RecordDecodeError: If ``content`` is not valid for the encoding.
    """
    try:
        if encoding == TransportEncoding.BASE64:
            padded = content.strip() + "=" * (-len(content.strip()) % 4)
            raw = base64.b64decode(padded, altchars=b"-_", validate=True)
            return raw.decode("utf-8")
        if encoding == TransportEncoding.HEX:
            return bytes.fromhex(content.strip()).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        # UnicodeDecodeError is a ValueError
        raise RecordDecodeError(f"Invalid {encoding.value} content: {e}") from e
    return content


class RecordCodec:
    """Encodes and decodes record envelopes for one collection."""

    def __init__(
        self,
        format: RecordFormat = RecordFormat.JSON,
        encoding: TransportEncoding = TransportEncoding.UTF8,
        decode_policy: DecodePolicy = DecodePolicy.LENIENT,
        encrypted: bool = False,
    ):
        """
        Initialize codec.

        Args:
            format: Serialization format for the envelope
            encoding: Transport encoding applied after serialization
            decode_policy: Reaction to an id mismatch on decode
            encrypted: Mark envelopes as encrypted (flag only)
        """
        self.format = RecordFormat(format)
        self.encoding = TransportEncoding(encoding)
        self.decode_policy = DecodePolicy(decode_policy)
        self.encrypted = encrypted

    @property
    def extension(self) -> str:
        """File extension for records produced by this codec."""
        return ".vault.json" if self.format == RecordFormat.JSON else ".vault.dat"

    def checksum(self, data: Any) -> str:
        return checksum(data)

    def verify_checksum(self, record: DecodedRecord) -> bool:
        """Recompute the checksum of a decoded record and compare."""
        if record.checksum is None:
            return False
        return record.checksum == checksum(record.data)

    def encode(
        self, record_id: str, data: Any, metadata: dict[str, Any] | None = None
    ) -> str:
        """Serialize a payload into storage content.

        Args:
            record_id: Identity embedded in the envelope
            data: JSON-serializable payload
            metadata: Descriptive fields stored alongside the payload

        Returns:
            Storage-ready string

        Raises:
            TypeError: If data or metadata cannot be serialized or a mapping
                has non-string keys
        """
        ensure_string_keys(metadata, "metadata")
        if self.format == RecordFormat.TEXT:
            serialized = data if isinstance(data, str) else str(data)
            return encode_transport(serialized, self.encoding)

        ensure_string_keys(data, "data")
        payload = to_jsonable(data)
        envelope: dict[str, Any] = {
            "id": record_id,
            "data": payload,
            "metadata": to_jsonable(metadata or {}),
            "checksum": checksum(payload),
            "version": RECORD_VERSION,
        }
        if self.encrypted:
            envelope["encrypted"] = True

        if self.format == RecordFormat.BINARY:
            serialized = json.dumps(envelope, separators=(",", ":"), ensure_ascii=False)
        else:
            serialized = json.dumps(envelope, indent=2, ensure_ascii=False)
        return encode_transport(serialized, self.encoding)

    def decode(self, content: str, expected_id: str | None = None) -> DecodedRecord:
        """Parse storage content back into a record.

        Args:
            content: String produced by ``encode``
            expected_id: Id the caller looked up, checked against the envelope

        Returns:
            DecodedRecord

        Raises:
            RecordDecodeError: Malformed content, or id mismatch under the
                strict decode policy.
        """
        text = decode_transport(content, self.encoding)

        if self.format == RecordFormat.TEXT:
            return DecodedRecord(id=expected_id or "", data=text)

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise RecordDecodeError(f"Invalid JSON envelope: {e}") from e

        if not isinstance(parsed, dict) or "data" not in parsed:
            raise RecordDecodeError("Envelope must be an object with a 'data' field")

        metadata = parsed.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise RecordDecodeError(
                f"Envelope metadata must be an object, got {type(metadata).__name__}"
            )

        stored_id = parsed.get("id")
        if expected_id is not None and stored_id != expected_id:
            if self.decode_policy == DecodePolicy.STRICT:
                raise RecordDecodeError(
                    f"Record id mismatch: expected {expected_id!r}, found {stored_id!r}"
                )
            logger.warning(
                "Record id mismatch: expected %r, found %r", expected_id, stored_id
            )

        return DecodedRecord(
            id=stored_id if isinstance(stored_id, str) else (expected_id or ""),
            data=parsed["data"],
            metadata=metadata,
            checksum=parsed.get("checksum"),
            version=parsed.get("version"),
            encrypted=bool(parsed.get("encrypted", False)),
        )

    def __repr__(self) -> str:
        return (
            f"RecordCodec(format={self.format.value}, encoding={self.encoding.value}, "
            f"decode_policy={self.decode_policy.value})"
        )
