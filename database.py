"""
In-memory document store backing the reference API.

Collections are plain dicts keyed by a stringified ObjectId. Documents go in
as pydantic models or dicts and come back as dicts carrying an ``id`` field
plus ``created_at`` / ``updated_at`` timestamps.
"""
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson.objectid import ObjectId
from pydantic import BaseModel


class MemoryDatabase:
    def __init__(self):
        self._collections: Dict[str, Dict[str, dict]] = {}

    def __getitem__(self, name: str) -> Dict[str, dict]:
        return self._collections.setdefault(name, {})

    def list_collection_names(self) -> List[str]:
        return sorted(self._collections)

    def drop(self):
        self._collections.clear()


db = MemoryDatabase()


def new_id() -> str:
    return str(ObjectId())


def _to_doc(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


def _matches(doc: dict, filter_dict: Dict[str, Any]) -> bool:
    return all(doc.get(k) == v for k, v in filter_dict.items())


def create_document(collection_name: str, data: Union[BaseModel, dict], doc_id: Optional[str] = None) -> str:
    doc = _to_doc(data)
    now = datetime.now(timezone.utc)
    doc["id"] = doc_id or doc.get("id") or new_id()
    doc["created_at"] = now
    doc["updated_at"] = now
    db[collection_name][doc["id"]] = doc
    return doc["id"]


def get_document(collection_name: str, doc_id: str) -> Optional[dict]:
    doc = db[collection_name].get(doc_id)
    return deepcopy(doc) if doc else None


def find_document(collection_name: str, filter_dict: Dict[str, Any]) -> Optional[dict]:
    for doc in db[collection_name].values():
        if _matches(doc, filter_dict):
            return deepcopy(doc)
    return None


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[dict]:
    docs = [deepcopy(d) for d in db[collection_name].values() if _matches(d, filter_dict or {})]
    docs.sort(key=lambda d: d["created_at"], reverse=True)
    if limit:
        docs = docs[:limit]
    return docs


def count_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
    return sum(1 for d in db[collection_name].values() if _matches(d, filter_dict or {}))


def update_document(collection_name: str, doc_id: str, update: Dict[str, Any]) -> Optional[dict]:
    doc = db[collection_name].get(doc_id)
    if doc is None:
        return None
    doc.update(deepcopy(update))
    doc["updated_at"] = datetime.now(timezone.utc)
    return deepcopy(doc)


def delete_document(collection_name: str, doc_id: str) -> bool:
    return db[collection_name].pop(doc_id, None) is not None
