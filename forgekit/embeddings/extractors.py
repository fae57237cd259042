"""
Text extraction from game content.

Each extractor flattens a content record into the text that gets embedded.
Non-empty parts are joined by blank lines; structured fields are rendered as
compact JSON.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Mapping, Optional

from .models import ContentType

Extractor = Callable[[Mapping[str, Any]], str]


def _json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


def _join(parts: List[Any]) -> str:
    return "\n\n".join(str(part) for part in parts if part)


def extract_lore_content(lore: Mapping[str, Any]) -> str:
    return _join([lore.get("title"), lore.get("category"), lore.get("content"), lore.get("summary")])


def extract_quest_content(quest: Mapping[str, Any]) -> str:
    return _join(
        [
            _first(quest, "title", "name"),
            quest.get("description"),
            quest.get("objective"),
            quest.get("questGiver"),
            f"Rewards: {_json(quest['rewards'])}" if quest.get("rewards") else None,
            f"Requirements: {_json(quest['requirements'])}" if quest.get("requirements") else None,
        ]
    )


def extract_item_content(item: Mapping[str, Any]) -> str:
    return _join(
        [
            item.get("name"),
            item.get("id"),
            _first(item, "type", "category"),
            item.get("description"),
            item.get("lore"),
            f"Stats: {_json(item['stats'])}" if item.get("stats") else None,
            f"Effects: {_json(item['effects'])}" if item.get("effects") else None,
        ]
    )


def extract_character_content(character: Mapping[str, Any]) -> str:
    """Used for both characters and NPCs."""
    dialogue = character.get("dialogue")
    if isinstance(dialogue, (list, tuple)):
        phrases: Optional[str] = "; ".join(str(line) for line in dialogue[:3])
    else:
        phrases = dialogue

    return _join(
        [
            character.get("name"),
            character.get("title"),
            _first(character, "race", "species"),
            _first(character, "class", "role"),
            character.get("description"),
            character.get("backstory"),
            character.get("personality"),
            f"Common phrases: {phrases}" if dialogue else None,
            f"Location: {character['location']}" if character.get("location") else None,
        ]
    )


def extract_manifest_content(manifest: Mapping[str, Any]) -> str:
    tags = manifest.get("tags")
    parts: List[Any] = [
        manifest.get("name"),
        _first(manifest, "category", "type"),
        manifest.get("description"),
        f"Tags: {', '.join(str(tag) for tag in tags)}" if tags else None,
        f"Metadata: {_json(manifest['metadata'])}" if manifest.get("metadata") else None,
    ]

    items = manifest.get("items")
    if isinstance(items, list):
        names = []
        for entry in items[:5]:
            if isinstance(entry, Mapping):
                names.append(str(_first(entry, "name", "id") or ""))
            else:
                names.append(str(entry))
        suffix = "..." if len(items) > 5 else ""
        parts.append(f"Items: {', '.join(names)}{suffix}")

    return _join(parts)


EXTRACTORS: Dict[ContentType, Extractor] = {
    ContentType.LORE: extract_lore_content,
    ContentType.QUEST: extract_quest_content,
    ContentType.ITEM: extract_item_content,
    ContentType.CHARACTER: extract_character_content,
    ContentType.NPC: extract_character_content,
    ContentType.MANIFEST: extract_manifest_content,
}
