"""
Payload decoding.

A proposed or stored record may arrive as a mapping, JSON text/bytes, or a
BSON document. Whatever the shape, it is decoded into the entity's pydantic
model; any failure becomes a DecodeError naming the entity.
"""

from typing import Any, Dict, Mapping, Type, TypeVar, Union
import json
import logging

import bson
from bson.errors import BSONError
from pydantic import BaseModel, ValidationError

from ledger_guard.errors import DecodeError

logger = logging.getLogger(__name__)

Payload = Union[Mapping[str, Any], str, bytes, bytearray]
ModelT = TypeVar("ModelT", bound=BaseModel)


def _looks_like_bson(data: bytes) -> bool:
    # BSON documents open with their own total length (int32, little-endian)
    return len(data) >= 5 and int.from_bytes(data[:4], "little") == len(data) and data[-1] == 0


def load_document(payload: Payload) -> Dict[str, Any]:
    """
    Turn any accepted payload shape into a plain dict.

    Raises ValueError (or a subclass) when the payload cannot be parsed.
    """
    if isinstance(payload, Mapping):
        return dict(payload)

    if isinstance(payload, (bytes, bytearray)):
        data = bytes(payload)
        if _looks_like_bson(data):
            return bson.decode(data)
        payload = data.decode("utf-8")

    if isinstance(payload, str):
        document = json.loads(payload)
        if not isinstance(document, dict):
            raise ValueError(f"expected a JSON object, got {type(document).__name__}")
        return document

    raise ValueError(f"unsupported payload type {type(payload).__name__}")


def decode_record(
    payload: Payload,
    model: Type[ModelT],
    entity: str,
    previous: bool = False
) -> ModelT:
    """
    Decode a payload into `model`.

    Raises:
        DecodeError: "Invalid <entity> data format: ..." for a proposed
            record, "Invalid previous <entity> data: ..." for a stored one.
    """
    try:
        return model.model_validate(load_document(payload))
    except (ValidationError, ValueError, BSONError) as e:
        if previous:
            message = f"Invalid previous {entity} data: {e}"
        else:
            message = f"Invalid {entity} data format: {e}"
        logger.info(f"[DECODE] {message}")
        raise DecodeError(message, details={"entity": entity, "previous": previous}) from e
