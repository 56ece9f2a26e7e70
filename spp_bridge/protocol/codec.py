"""Utilities to serialise control-channel documents to/from the wire format."""
from __future__ import annotations

import json
from typing import Any, Dict


class LineCodec:
    """Encode/decode newline separated JSON documents."""

    @staticmethod
    def encode(document: Dict[str, Any]) -> bytes:
        return (json.dumps(document, separators=(",", ":")) + "\n").encode("utf-8")

    @staticmethod
    def decode(line: bytes) -> Dict[str, Any]:
        raw = line.decode("utf-8").strip()
        if not raw:
            raise ValueError("empty line")
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("expected JSON object")
        return data


__all__ = ["LineCodec"]
