"""Minimal reader/writer for the text form of clothing and body part assets.

Only the ``textures`` block matters to the archiver::

    LLWearable version 22
    <name>
    ...
    textures 2
    0 5748decc-f629-461c-9a36-a35a221fe21f
    5 0b6a2b3c-...
"""

from __future__ import annotations

from typing import Dict, Union
from uuid import UUID

from ..errors import decode_error

__all__ = ["wearable_textures", "encode_wearable"]


def wearable_textures(data: Union[bytes, str]) -> Dict[int, UUID]:
    """Return the face index -> texture id map of a wearable asset."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    lines = [ln.strip() for ln in data.splitlines()]
    if not lines or not lines[0].startswith("LLWearable version"):
        raise decode_error("Not a wearable asset")

    for i, line in enumerate(lines):
        words = line.split()
        if len(words) != 2 or words[0] != "textures":
            continue
        try:
            count = int(words[1])
        except ValueError as e:
            raise decode_error(f"Bad texture count: {line!r}") from e
        block = lines[i + 1 : i + 1 + count]
        if len(block) != count:
            raise decode_error("Wearable texture block is truncated")
        textures: Dict[int, UUID] = {}
        for entry in block:
            try:
                index, texture = entry.split()
                textures[int(index)] = UUID(texture)
            except ValueError as e:
                raise decode_error(f"Bad wearable texture line: {entry!r}") from e
        return textures
    return {}


def encode_wearable(name: str, wearable_type: int, textures: Dict[int, UUID]) -> bytes:
    lines = [
        "LLWearable version 22",
        name,
        "\tpermissions 0",
        "\t{",
        "\t}",
        f"type {wearable_type}",
        "parameters 0",
        f"textures {len(textures)}",
    ]
    lines.extend(f"{index} {texture}" for index, texture in sorted(textures.items()))
    return ("\n".join(lines) + "\n").encode("utf-8")
