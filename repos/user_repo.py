from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from google.cloud import firestore
from google.cloud.firestore import Client

from models.schema import COL_USERS, FIELD_FCM_TOKENS
from storage.firestore_client import get_firestore_client


class UserRepository:
    def __init__(self, db: Optional[Client] = None):
        self.db = db or get_firestore_client()

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        snap = self.db.collection(COL_USERS).document(user_id).get()
        if not snap.exists:
            return None
        d = snap.to_dict() or {}
        d["user_id"] = user_id
        return d

    def get_push_tokens(self, user_id: str) -> List[str]:
        # fcmTokens is a map of token -> marker; only the keys matter.
        user = self.get(user_id) or {}
        tokens = user.get(FIELD_FCM_TOKENS) or {}
        if not isinstance(tokens, dict):
            return []
        return [t for t in tokens.keys() if t]

    def remove_push_tokens(self, user_id: str, tokens: Iterable[str]) -> int:
        # Tokens can contain characters that are not valid in a dotted field path.
        updates = {
            firestore.FieldPath(FIELD_FCM_TOKENS, t).to_api_repr(): firestore.DELETE_FIELD
            for t in tokens
            if t
        }
        if not updates:
            return 0
        self.db.collection(COL_USERS).document(user_id).update(updates)
        return len(updates)
