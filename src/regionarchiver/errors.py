"""Error taxonomy for archive reads and writes."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

E_STREAM_FATAL = "E_STREAM_FATAL"
E_ENTRY_DECODE = "E_ENTRY_DECODE"
E_ASSET_MISSING = "E_ASSET_MISSING"
E_IDENTITY_UNRESOLVED = "E_IDENTITY_UNRESOLVED"
E_CANCELLED = "E_CANCELLED"
E_CONFIG = "E_CONFIG"


@dataclass
class ArchiveError(Exception):
    code: str
    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}" + (
            f" | ctx={self.context}" if self.context else ""
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context or {},
        }


class StreamFatalError(ArchiveError):
    """The container itself is malformed or unreadable."""


class EntryDecodeError(ArchiveError):
    """A single object or asset entry could not be parsed."""


class AssetMissingError(ArchiveError):
    """A referenced asset is not in the store. Recorded, never raised."""


class IdentityUnresolvedError(ArchiveError):
    """An owner or creator is unknown to the destination. Recorded, never raised."""


class ImportCancelledError(ArchiveError):
    pass


class ConfigError(ArchiveError):
    pass


def stream_fatal(
    message: str, context: Optional[Dict[str, Any]] = None
) -> StreamFatalError:
    return StreamFatalError(code=E_STREAM_FATAL, message=message, context=context)


def decode_error(
    message: str, context: Optional[Dict[str, Any]] = None
) -> EntryDecodeError:
    return EntryDecodeError(code=E_ENTRY_DECODE, message=message, context=context)


def asset_missing(asset_id: Any) -> AssetMissingError:
    return AssetMissingError(
        code=E_ASSET_MISSING,
        message=f"asset {asset_id} not found",
        context={"asset_id": str(asset_id)},
    )


def config_error(
    message: str, context: Optional[Dict[str, Any]] = None
) -> ConfigError:
    return ConfigError(code=E_CONFIG, message=message, context=context)


def identity_unresolved(identity: Any, role: str, object_name: str) -> IdentityUnresolvedError:
    return IdentityUnresolvedError(
        code=E_IDENTITY_UNRESOLVED,
        message=f"{role} {identity} of object '{object_name}' not found",
        context={"identity": str(identity), "role": role, "object": object_name},
    )


__all__ = [
    "ArchiveError",
    "StreamFatalError",
    "EntryDecodeError",
    "AssetMissingError",
    "IdentityUnresolvedError",
    "ImportCancelledError",
    "ConfigError",
    "stream_fatal",
    "decode_error",
    "asset_missing",
    "config_error",
    "identity_unresolved",
    "E_STREAM_FATAL",
    "E_ENTRY_DECODE",
    "E_ASSET_MISSING",
    "E_IDENTITY_UNRESOLVED",
    "E_CANCELLED",
    "E_CONFIG",
]
