"""Archive of confirmed assistant results."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

import redis
from redis import Redis
from redis.exceptions import RedisError

from .controller import ChatEntry

try:  # pragma: no cover - optional dependency path
    from redis.commands.json.path import Path as RedisJsonPath
except ImportError:  # pragma: no cover - fallback when RedisJSON missing
    RedisJsonPath = None

logger = logging.getLogger(__name__)

INDEX_KEY = "confirmations:index"
CONTEXT_KEY = "confirmations:context"


def _timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class ConfirmationRepository:
    """Appends confirmed estimates to JSONL and mirrors them into Redis."""

    def __init__(self, archive_path: Path, redis_url: Optional[str]) -> None:
        self._archive_path = archive_path
        self._archive_path.parent.mkdir(parents=True, exist_ok=True)
        self._redis_url = redis_url
        self._redis: Optional[Redis] = None

    def _get_redis(self) -> Optional[Redis]:
        if not self._redis_url:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(  # type: ignore[call-overload]
                    self._redis_url,
                    decode_responses=True,
                )
            except RedisError as exc:  # pragma: no cover - network guarded
                logger.warning("Redis connection failed: %s", exc)
                self._redis = None
        return self._redis

    def save_confirmation(
        self,
        *,
        context_key: str,
        estimate: str,
        answers: Sequence[str],
        messages: Sequence[ChatEntry],
    ) -> str:
        """Persist a confirmed estimate and return its record id."""

        created_at = datetime.now(timezone.utc)
        record_id = "conf-{}-{}".format(
            created_at.strftime("%Y%m%d%H%M%S"),
            uuid4().hex[:6],
        )
        record: Dict[str, Any] = {
            "id": record_id,
            "context_key": context_key,
            "estimate": estimate,
            "created_at": _timestamp(created_at),
            "created_at_ts": created_at.timestamp(),
            "answers": list(answers),
            "messages": [entry.to_dict() for entry in messages],
        }

        with self._archive_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False) + "\n")

        client = self._get_redis()
        if client:
            key = f"confirmation:{record_id}"
            try:
                if RedisJsonPath and hasattr(client, "json"):
                    client.json().set(key, RedisJsonPath.root_path(), record)
                else:
                    client.set(key, json.dumps(record, ensure_ascii=False))
                client.zadd(INDEX_KEY, {record_id: record["created_at_ts"]})
                client.hset(  # type: ignore[call-overload]
                    CONTEXT_KEY,
                    record_id,
                    context_key,
                )
            except RedisError as exc:  # pragma: no cover - best effort
                logger.warning("Redis persistence failed for %s: %s", key, exc)

        logger.info("Archived confirmation %s for %s", record_id, context_key)
        return record_id

    def load_all(self) -> List[Dict[str, Any]]:
        """Read every archived record from the JSONL file."""

        if not self._archive_path.exists():
            return []
        records: List[Dict[str, Any]] = []
        with self._archive_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed archive line")
                    continue
                if isinstance(payload, dict):
                    records.append(payload)
        return records

    @property
    def archive_path(self) -> Path:
        """Return the filesystem path for the JSONL archive."""

        return self._archive_path
