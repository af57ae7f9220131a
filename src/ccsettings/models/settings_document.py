"""Settings document model.

A legacy document only has a ``hooks`` map. A versioned document adds a
``$schema`` URI, a semantic ``version`` and a ``meta`` block that records
when the document was created, which scope it belongs to and which schema
migrations have been applied to it.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..exceptions import StructuralError
from ..types.enums import HookEventType
from .hook_config import HookEntry, parse_hook_entry

LEGACY_TOP_LEVEL_KEYS = {"hooks"}
VERSIONED_TOP_LEVEL_KEYS = {"hooks", "$schema", "version", "meta"}


@dataclass
class MigrationRecord:
    """One applied migration, as stored under ``meta.migrations``."""
    version: str
    applied_at: str
    description: str
    changes: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationRecord":
        if not isinstance(data, dict) or not isinstance(data.get("version"), str):
            raise StructuralError("Migration record requires a string 'version'")
        return cls(
            version=data["version"],
            applied_at=data.get("appliedAt", ""),
            description=data.get("description", ""),
            changes=list(data.get("changes", [])),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "appliedAt": self.applied_at,
            "description": self.description,
            "changes": list(self.changes),
        }


@dataclass
class SettingsMetadata:
    """The ``meta`` block of a versioned document."""
    created_at: str
    updated_at: str
    source: str
    migrations: List[MigrationRecord] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SettingsMetadata":
        if not isinstance(data, dict):
            raise StructuralError("'meta' must be an object", location="meta")
        migrations = data.get("migrations", [])
        if not isinstance(migrations, list):
            raise StructuralError("'meta.migrations' must be an array", location="meta.migrations")
        extra = {key: copy.deepcopy(value) for key, value in data.items()
                 if key not in ("createdAt", "updatedAt", "source", "migrations")}
        return cls(
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
            source=data.get("source", ""),
            migrations=[MigrationRecord.from_dict(record) for record in migrations],
            extra=extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "source": self.source,
            "migrations": [record.to_dict() for record in self.migrations],
        }
        result.update(copy.deepcopy(self.extra))
        return result

    def applied_versions(self) -> List[str]:
        return [record.version for record in self.migrations]


@dataclass
class SettingsDocument:
    """Typed view of a whole settings file.

    Attributes:
        hooks: Entries per event, in file order; None when the document has
            no ``hooks`` key at all
        schema: ``$schema`` URI of a versioned document
        version: Declared schema version, None for legacy documents
        meta: Metadata block of a versioned document
    """
    hooks: Optional[Dict[HookEventType, List[HookEntry]]] = None
    schema: Optional[str] = None
    version: Optional[str] = None
    meta: Optional[SettingsMetadata] = None

    @property
    def is_versioned(self) -> bool:
        return self.version is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SettingsDocument":
        """Parse a settings dict.

        Raises:
            StructuralError: If the document has the wrong shape
        """
        if not isinstance(data, dict):
            raise StructuralError(f"Settings must be a JSON object, got {type(data).__name__}")

        unknown = set(data.keys()) - VERSIONED_TOP_LEVEL_KEYS
        if unknown:
            raise StructuralError(f"Unknown top-level keys: {', '.join(sorted(unknown))}")

        hooks = None
        if "hooks" in data:
            raw_hooks = data["hooks"]
            if not isinstance(raw_hooks, dict):
                raise StructuralError("'hooks' must be an object", location="hooks")
            hooks = {}
            for event_name, configs in raw_hooks.items():
                if not HookEventType.is_valid(event_name):
                    raise StructuralError(f"Unknown hook event: {event_name}", location=f"hooks.{event_name}")
                if not isinstance(configs, list):
                    raise StructuralError(f"Hooks for {event_name} must be an array",
                                          location=f"hooks.{event_name}")
                hooks[HookEventType(event_name)] = [parse_hook_entry(config) for config in configs]

        meta = None
        if "meta" in data:
            meta = SettingsMetadata.from_dict(data["meta"])

        return cls(
            hooks=hooks,
            schema=data.get("$schema"),
            version=data.get("version"),
            meta=meta,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.schema is not None:
            result["$schema"] = self.schema
        if self.version is not None:
            result["version"] = self.version
        if self.hooks is not None:
            result["hooks"] = {
                event.value: [entry.to_dict() for entry in entries]
                for event, entries in self.hooks.items()
            }
        if self.meta is not None:
            result["meta"] = self.meta.to_dict()
        return result

    def entries_for(self, event: HookEventType) -> List[HookEntry]:
        if not self.hooks:
            return []
        return list(self.hooks.get(event, []))

    def iter_entries(self) -> Iterator[Tuple[HookEventType, HookEntry]]:
        for event, entries in (self.hooks or {}).items():
            for entry in entries:
                yield event, entry

    def header(self) -> Dict[str, Any]:
        """The non-hook fields ($schema, version, meta) as a dict."""
        header = self.to_dict()
        header.pop("hooks", None)
        return header
