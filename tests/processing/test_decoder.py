# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for typed payload decoding.
"""

import json

import pytest

from fmlastheard.processing.errors import DecodeError, ValidationError
from fmlastheard.processing.ingest.decoder import decode_json, decode_node, decode_talker


class TestDecodeJson:
    """Test the JSON object gate."""

    def test_accepts_bytes_with_leading_whitespace(self):
        assert decode_json(b'  \n{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("payload", ["", "   ", "[1, 2]", "null", "hello", '{"a": '])
    def test_rejects_non_objects(self, payload):
        with pytest.raises(DecodeError):
            decode_json(payload)

    def test_rejects_invalid_utf8(self):
        with pytest.raises(DecodeError):
            decode_json(b'{"call": "\xff"}')


class TestDecodeTalker:
    """Test the talker channel."""

    def test_decodes_all_fields(self):
        msg = decode_talker('{"time": "12:00:00", "talk": "start", "call": "AB1C", "tg": "262", "server": "fm1"}')
        assert msg.time == "12:00:00"
        assert msg.talk == "start"
        assert msg.call == "AB1C"
        assert msg.tg == "262"
        assert msg.server == "fm1"

    def test_server_is_optional(self):
        msg = decode_talker('{"time": "12:00:00", "talk": "stop", "call": "AB1C", "tg": 262}')
        assert msg.server == ""
        assert msg.tg == "262"

    @pytest.mark.parametrize("missing", ["time", "talk", "call", "tg"])
    def test_missing_required_field(self, missing):
        data = {"time": "12:00:00", "talk": "start", "call": "AB1C", "tg": "262"}
        del data[missing]
        with pytest.raises(ValidationError) as exc:
            decode_talker(json.dumps(data))
        assert exc.value.field == missing

    def test_empty_required_field(self):
        with pytest.raises(ValidationError) as exc:
            decode_talker('{"time": "12:00:00", "talk": "start", "call": "  ", "tg": "262"}')
        assert exc.value.field == "call"


class TestDecodeNode:
    """Test the node metadata channel."""

    def test_coordinates_accept_numbers_and_strings(self):
        node = decode_node('{"call": "DB0XYZ", "lat": "52.5", "lon": 13.4, "location": "Berlin"}')
        assert node.lat == 52.5
        assert node.lon == 13.4
        assert node.location == "Berlin"

    def test_null_and_garbage_coordinates_become_none(self):
        node = decode_node('{"call": "DB0XYZ", "lat": null, "lon": "east"}')
        assert node.lat is None
        assert node.lon is None
        assert node.rx_freq == ""

    def test_call_required(self):
        with pytest.raises(ValidationError):
            decode_node('{"location": "Berlin"}')
