from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from models.schema import COL_CHATS, COL_MESSAGES


def decode_value(v: Dict[str, Any]) -> Any:
    """Firestore REST/Eventarc typed value -> plain Python value."""
    if not isinstance(v, dict) or not v:
        return None
    if "nullValue" in v:
        return None
    if "booleanValue" in v:
        return bool(v["booleanValue"])
    if "integerValue" in v:
        return int(v["integerValue"])
    if "doubleValue" in v:
        return float(v["doubleValue"])
    if "stringValue" in v:
        return v["stringValue"]
    if "timestampValue" in v:
        return v["timestampValue"]
    if "referenceValue" in v:
        return v["referenceValue"]
    if "bytesValue" in v:
        return v["bytesValue"]
    if "geoPointValue" in v:
        return dict(v["geoPointValue"] or {})
    if "arrayValue" in v:
        return [decode_value(x) for x in (v["arrayValue"] or {}).get("values", [])]
    if "mapValue" in v:
        return decode_fields((v["mapValue"] or {}).get("fields") or {})
    return None


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: decode_value(val) for k, val in (fields or {}).items()}


def document_path_segments(name: str) -> List[str]:
    # "projects/p/databases/(default)/documents/chats/c1/messages/m1" -> ["chats", "c1", "messages", "m1"]
    rest = name or ""
    marker = "/documents/"
    idx = rest.find(marker)
    if idx >= 0:
        rest = rest[idx + len(marker):]
    elif rest.startswith("documents/"):
        rest = rest[len("documents/"):]
    return [s for s in rest.split("/") if s]


@dataclass
class ChatMessageUpdate:
    chat_id: str
    message_id: str
    before: Optional[Dict[str, Any]]
    after: Optional[Dict[str, Any]]


def parse_chat_message_update(body: Dict[str, Any], subject: str = "") -> ChatMessageUpdate:
    """
    Parses an Eventarc `google.cloud.firestore.document.v1.updated` event in
    JSON encoding. The document name comes from the new value, falling back to
    the CloudEvent subject ("documents/chats/{chatId}/messages/{messageId}").
    """
    value = body.get("value") or {}
    old_value = body.get("oldValue") or {}
    name = value.get("name") or old_value.get("name") or subject or ""
    segs = document_path_segments(name)
    if len(segs) != 4 or segs[0] != COL_CHATS or segs[2] != COL_MESSAGES:
        raise ValueError(f"not a chat message document: {name!r}")

    return ChatMessageUpdate(
        chat_id=segs[1],
        message_id=segs[3],
        before=decode_fields(old_value.get("fields") or {}) if old_value else None,
        after=decode_fields(value.get("fields") or {}) if value else None,
    )
