"""Hook configuration models in the host application's settings format.

On disk a hook event maps to a list of configurations::

    {
        "matcher": "Write|Edit",              // optional
        "hooks": [
            {"type": "command", "command": "prettier --write .", "timeout": 30}
        ],
        "ccsettings": {"name": "format-on-save"}   // optional ownership tag
    }

A configuration that carries a well-formed ownership tag was written by
this engine and is Managed; any other configuration is Foreign. The
distinction is made once, when an entry is parsed, and is carried as a
ManagedEntry or ForeignEntry. Both keep the raw configuration so that
re-serialization reproduces the original object exactly.

The ``from_dict`` constructors raise StructuralError on input of the wrong
shape. Callers that need the full list of problems should run the
SchemaValidator first.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..exceptions import StructuralError
from ..types.enums import EntryOwnership

OWNERSHIP_KEY = "ccsettings"
UNNAMED_IDENTITY = "unnamed"

HOOK_COMMAND_KEYS = {"type", "command", "timeout", OWNERSHIP_KEY}
HOOK_CONFIGURATION_KEYS = {"matcher", "hooks", OWNERSHIP_KEY}


@dataclass
class OwnershipTag:
    """Marker identifying a configuration created by this engine.

    Attributes:
        name: Stable name of the managed hook; used as its merge identity
        description: Optional human-readable description
        version: Optional version of the hook definition
        factory_arguments: Optional arguments the hook was generated with
    """
    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    factory_arguments: Optional[Dict[str, Any]] = None

    @staticmethod
    def is_well_formed(data: Any) -> bool:
        return (
            isinstance(data, dict)
            and isinstance(data.get("name"), str)
            and bool(data["name"].strip())
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OwnershipTag":
        if not cls.is_well_formed(data):
            raise StructuralError(
                "Ownership tag must be an object with a non-empty 'name'",
                location=OWNERSHIP_KEY,
            )
        return cls(
            name=data["name"],
            description=data.get("description"),
            version=data.get("version"),
            factory_arguments=copy.deepcopy(data.get("factoryArguments")),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name}
        if self.description is not None:
            result["description"] = self.description
        if self.version is not None:
            result["version"] = self.version
        if self.factory_arguments is not None:
            result["factoryArguments"] = copy.deepcopy(self.factory_arguments)
        return result


@dataclass
class HookCommand:
    """A single command hook: ``{"type": "command", "command": ..., "timeout"?: ...}``.

    Unknown keys are kept in ``extra`` so they survive a round trip.
    """
    command: str
    type: str = "command"
    timeout: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HookCommand":
        if not isinstance(data, dict):
            raise StructuralError(f"Hook command must be an object, got {type(data).__name__}")
        if data.get("type") != "command":
            raise StructuralError(f"Hook command type must be 'command', got {data.get('type')!r}")
        command = data.get("command")
        if not isinstance(command, str):
            raise StructuralError(f"Hook command must be a string, got {type(command).__name__}")

        timeout = data.get("timeout")
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))):
            raise StructuralError(f"Hook timeout must be a number, got {type(timeout).__name__}")

        extra = {key: copy.deepcopy(value) for key, value in data.items()
                 if key not in ("type", "command", "timeout")}
        return cls(command=command, type=data["type"], timeout=timeout, extra=extra)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type, "command": self.command}
        if self.timeout is not None:
            result["timeout"] = self.timeout
        result.update(copy.deepcopy(self.extra))
        return result


@dataclass
class HookConfiguration:
    """A matcher plus the command hooks it triggers.

    Attributes:
        hooks: Command hooks, in file order
        matcher: Optional tool-name pattern
        tag: Ownership tag when the configuration is Managed
        extra: Unknown keys, preserved verbatim
    """
    hooks: List[HookCommand] = field(default_factory=list)
    matcher: Optional[str] = None
    tag: Optional[OwnershipTag] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HookConfiguration":
        if not isinstance(data, dict):
            raise StructuralError(f"Hook configuration must be an object, got {type(data).__name__}")

        hooks = data.get("hooks")
        if not isinstance(hooks, list):
            raise StructuralError("Hook configuration requires a 'hooks' array")

        matcher = data.get("matcher")
        if matcher is not None and not isinstance(matcher, str):
            raise StructuralError(f"Matcher must be a string, got {type(matcher).__name__}")

        tag = None
        if OWNERSHIP_KEY in data:
            tag = OwnershipTag.from_dict(data[OWNERSHIP_KEY])

        extra = {key: copy.deepcopy(value) for key, value in data.items()
                 if key not in HOOK_CONFIGURATION_KEYS}
        return cls(
            hooks=[HookCommand.from_dict(item) for item in hooks],
            matcher=matcher,
            tag=tag,
            extra=extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.matcher is not None:
            result["matcher"] = self.matcher
        result["hooks"] = [hook.to_dict() for hook in self.hooks]
        if self.tag is not None:
            result[OWNERSHIP_KEY] = self.tag.to_dict()
        result.update(copy.deepcopy(self.extra))
        return result

    @property
    def is_managed(self) -> bool:
        return self.tag is not None

    def identity(self) -> str:
        """Merge identity: tag name, else non-empty matcher, else 'unnamed'."""
        if self.tag is not None:
            return self.tag.name
        if self.matcher:
            return self.matcher
        return UNNAMED_IDENTITY


@dataclass
class ManagedEntry:
    """A hook configuration owned by this engine."""
    tag: OwnershipTag
    config: HookConfiguration
    raw: Dict[str, Any]

    ownership = EntryOwnership.MANAGED

    @property
    def identity(self) -> str:
        return self.tag.name

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.raw)


@dataclass
class ForeignEntry:
    """A hook configuration written by someone else; merges never touch it."""
    config: HookConfiguration
    raw: Dict[str, Any]

    ownership = EntryOwnership.FOREIGN

    @property
    def identity(self) -> str:
        return self.config.identity()

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.raw)


HookEntry = Union[ManagedEntry, ForeignEntry]


def parse_hook_entry(data: Dict[str, Any]) -> HookEntry:
    """Parse a raw configuration into a ManagedEntry or ForeignEntry.

    Raises:
        StructuralError: If the configuration has the wrong shape
    """
    config = HookConfiguration.from_dict(data)
    raw = copy.deepcopy(data)
    if config.tag is not None:
        return ManagedEntry(tag=config.tag, config=config, raw=raw)
    return ForeignEntry(config=config, raw=raw)


def is_managed(entry: HookEntry) -> bool:
    return isinstance(entry, ManagedEntry)
