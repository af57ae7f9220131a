"""Ownership-aware merging of an incoming settings document into an existing one.

Entries carrying this engine's ownership tag (Managed) belong to the engine
and are replaced wholesale by whatever the incoming document declares.
Entries without a tag (Foreign) were written by hand or by other tools;
they are carried over byte-identical and in their original order, ahead of
the incoming entries for the same event.
"""

import copy
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Union

from ..models.hook_config import ForeignEntry, HookEntry, ManagedEntry
from ..models.results import HookChange, MergeDiff
from ..models.settings_document import SettingsDocument
from ..types.enums import HookEventType
from ..utils.json_handler import canonical_json

logger = logging.getLogger(__name__)

DocumentLike = Union[SettingsDocument, Dict[str, Any]]


def _as_document(doc: DocumentLike) -> SettingsDocument:
    if isinstance(doc, SettingsDocument):
        return doc
    return SettingsDocument.from_dict(doc)


def _group_by_identity(entries: List[HookEntry]) -> "OrderedDict[str, List[HookEntry]]":
    groups: "OrderedDict[str, List[HookEntry]]" = OrderedDict()
    for entry in entries:
        groups.setdefault(entry.identity, []).append(entry)
    return groups


def _serialized(entries: List[HookEntry]) -> List[str]:
    return [canonical_json(entry.to_dict()) for entry in entries]


class SelectiveMerger:
    """Merges and diffs settings documents by hook ownership.

    Both operations accept SettingsDocument instances or plain dicts; dicts
    are parsed once on entry and raise StructuralError if malformed.
    """

    def merge(self, existing: DocumentLike, incoming: DocumentLike) -> SettingsDocument:
        """Foreign entries of ``existing`` followed by all entries of ``incoming``, per event.

        Events left without entries are omitted. ``$schema``, ``version``
        and ``meta`` are taken from ``incoming``.
        """
        existing_doc = _as_document(existing)
        incoming_doc = _as_document(incoming)

        hooks: Dict[HookEventType, List[HookEntry]] = {}
        kept = dropped = 0
        for event in HookEventType:
            carried = []
            for entry in existing_doc.entries_for(event):
                if isinstance(entry, ForeignEntry):
                    carried.append(entry)
                    kept += 1
                else:
                    dropped += 1
            merged = carried + incoming_doc.entries_for(event)
            if merged:
                hooks[event] = merged

        logger.info(
            f"Merged settings: kept {kept} foreign entr{'y' if kept == 1 else 'ies'}, "
            f"replaced {dropped} managed, added {sum(len(e) for e in (incoming_doc.hooks or {}).values())} incoming"
        )

        return SettingsDocument(
            hooks=hooks,
            schema=incoming_doc.schema,
            version=incoming_doc.version,
            meta=copy.deepcopy(incoming_doc.meta),
        )

    def diff(self, existing: DocumentLike, incoming: DocumentLike) -> MergeDiff:
        """Which logical hooks a merge would add, modify or remove.

        Identities only in ``incoming`` are added; identities in both whose
        serialized configurations differ are modified; identities only in
        ``existing`` are removed if they are Managed. Foreign identities are
        never reported as removed.
        """
        existing_doc = _as_document(existing)
        incoming_doc = _as_document(incoming)
        result = MergeDiff()

        for event in HookEventType:
            existing_groups = _group_by_identity(existing_doc.entries_for(event))
            incoming_groups = _group_by_identity(incoming_doc.entries_for(event))

            for identity, entries in incoming_groups.items():
                change = HookChange(event=event.value, identity=identity)
                if identity not in existing_groups:
                    result.added.append(change)
                elif _serialized(existing_groups[identity]) != _serialized(entries):
                    result.modified.append(change)

            for identity, entries in existing_groups.items():
                if identity in incoming_groups:
                    continue
                if any(isinstance(entry, ManagedEntry) for entry in entries):
                    result.removed.append(HookChange(event=event.value, identity=identity))

        return result
