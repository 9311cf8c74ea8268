# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Typed decoding of relay payloads.

Each channel declares its required and optional fields once; decoding
either yields a frozen message object or raises DecodeError (not a JSON
object) / ValidationError (required field missing or empty).
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from ..errors import DecodeError, ValidationError

Payload = Union[bytes, bytearray, str]


@dataclass(frozen=True)
class TalkerMessage:
    """Raw talker event as sent on the talker channel."""

    time: str
    talk: str
    call: str
    tg: str
    server: str = ""

    REQUIRED = ("time", "talk", "call", "tg")
    OPTIONAL = ("server",)


@dataclass(frozen=True)
class NodeMessage:
    """Node metadata as sent on the node channel."""

    call: str
    location: str = ""
    locator: str = ""
    lat: Optional[float] = None
    lon: Optional[float] = None
    rx_freq: str = ""
    tx_freq: str = ""

    REQUIRED = ("call",)
    OPTIONAL = ("location", "locator", "lat", "lon", "rx_freq", "tx_freq")


def decode_json(payload: Payload) -> Dict[str, Any]:
    """
    Parse a payload into a JSON object.

    Raises:
        DecodeError: If the payload is empty, not UTF-8, not JSON, or not an object
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Payload is not UTF-8: {e}") from e

    text = payload.lstrip(" \t\r\n")
    if not text.startswith("{"):
        raise DecodeError("Payload is not a JSON object")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"JSON parse error: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError("Payload is not a JSON object")
    return data


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    return str(value).strip()


def _require(data: Dict[str, Any], fields: Tuple[str, ...], channel: str) -> Dict[str, str]:
    values = {}
    for name in fields:
        value = _text(data, name)
        if not value:
            raise ValidationError(f"{channel} message missing required field '{name}'", field=name)
        values[name] = value
    return values


def _coordinate(value: Any) -> Optional[float]:
    """Numbers or numeric strings; anything else (incl. null) is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(result) else result


def decode_talker(payload: Payload) -> TalkerMessage:
    """Decode a talker channel payload."""
    data = decode_json(payload)
    required = _require(data, TalkerMessage.REQUIRED, "talker")
    return TalkerMessage(server=_text(data, "server"), **required)


def decode_node(payload: Payload) -> NodeMessage:
    """Decode a node metadata payload."""
    data = decode_json(payload)
    required = _require(data, NodeMessage.REQUIRED, "node")
    return NodeMessage(
        call=required["call"],
        location=_text(data, "location"),
        locator=_text(data, "locator"),
        lat=_coordinate(data.get("lat")),
        lon=_coordinate(data.get("lon")),
        rx_freq=_text(data, "rx_freq"),
        tx_freq=_text(data, "tx_freq"),
    )
