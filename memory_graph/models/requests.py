"""
Request records for the public operations.

Each record is built from a decoded JSON body with ``from_dict``; anything
missing or of the wrong shape raises ValidationError before any store access.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..utils.config import config
from ..utils.timestamp_utils import to_datetime
from .core import DEFAULT_CONTENT_TYPE, normalize_tags


class ValidationError(ValueError):
    """Raised when a request is missing required fields or is malformed."""
    pass


def _require_mapping(payload: Any) -> Dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def _require_user_id(payload: Dict[str, Any]) -> str:
    user_id = payload.get('userId')
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError('userId is required')
    return user_id.strip()


def _optional_string_list(value: Any, name: str) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f'{name} must be a string or a list of strings')
    return list(value)


def _optional_date(value: Any, name: str) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{name} must be an ISO-8601 date string')
    try:
        return to_datetime(value)
    except ValueError:
        raise ValidationError(f'{name} is not a valid ISO-8601 date: {value}')


def _number(value: Any, name: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f'{name} must be a number')
    if not math.isfinite(value):
        raise ValidationError(f'{name} must be a finite number')
    return value


@dataclass
class AutoConnectRequest:
    user_id: str
    memory_ids: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, payload: Any) -> 'AutoConnectRequest':
        payload = _require_mapping(payload)
        return cls(user_id=_require_user_id(payload), memory_ids=_optional_string_list(payload.get('memoryIds'), 'memoryIds'))


@dataclass
class GraphFilters:
    content_types: Optional[List[str]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @classmethod
    def from_dict(cls, payload: Any) -> 'GraphFilters':
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise ValidationError('filters must be an object')

        content_types = _optional_string_list(payload.get('contentType'), 'filters.contentType')
        if content_types:
            content_types = [content_type for content_type in content_types if content_type != 'all'] or None

        date_from = _optional_date(payload.get('dateFrom'), 'filters.dateFrom')
        date_to = _optional_date(payload.get('dateTo'), 'filters.dateTo')
        if date_from and date_to and date_from > date_to:
            raise ValidationError('filters.dateFrom must not be after filters.dateTo')

        return cls(content_types=content_types, date_from=date_from, date_to=date_to)


@dataclass
class GraphRequest:
    user_id: str
    filters: GraphFilters = field(default_factory=GraphFilters)

    @classmethod
    def from_dict(cls, payload: Any) -> 'GraphRequest':
        payload = _require_mapping(payload)
        return cls(user_id=_require_user_id(payload), filters=GraphFilters.from_dict(payload.get('filters')))


@dataclass
class SearchRequest:
    query: str
    user_id: str
    content_type: Optional[str] = None
    limit: int = 20
    similarity_threshold: float = 0.7

    @classmethod
    def from_dict(cls, payload: Any) -> 'SearchRequest':
        payload = _require_mapping(payload)

        query = payload.get('query')
        if not isinstance(query, str) or not query.strip():
            raise ValidationError('Query text is required')
        user_id = _require_user_id(payload)

        filters = payload.get('filters') or {}
        if not isinstance(filters, dict):
            raise ValidationError('filters must be an object')
        content_type = filters.get('contentType')
        if content_type is not None and not isinstance(content_type, str):
            raise ValidationError('filters.contentType must be a string')
        if content_type == 'all':
            content_type = None

        limit = _number(payload.get('limit'), 'limit', config.search.default_limit)
        if int(limit) != limit:
            raise ValidationError('limit must be an integer')
        threshold = _number(payload.get('similarityThreshold'), 'similarityThreshold',
                            config.search.default_similarity_threshold)

        request = cls(query=query.strip(),
                      user_id=user_id,
                      content_type=content_type or None,
                      limit=int(limit),
                      similarity_threshold=float(threshold))
        request.validate()
        return request

    def validate(self) -> None:
        if not self.query or not self.query.strip():
            raise ValidationError('Query text is required')
        if not self.user_id or not self.user_id.strip():
            raise ValidationError('userId is required')
        if self.limit < 1:
            raise ValidationError('limit must be at least 1')
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValidationError('similarityThreshold must be between 0 and 1')


@dataclass
class AnalyticsRequest:
    user_id: str

    @classmethod
    def from_dict(cls, payload: Any) -> 'AnalyticsRequest':
        return cls(user_id=_require_user_id(_require_mapping(payload)))


@dataclass
class SaveMemoryRequest:
    user_id: str
    content: str
    content_type: str = DEFAULT_CONTENT_TYPE
    tags: List[str] = field(default_factory=list)
    title: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> 'SaveMemoryRequest':
        payload = _require_mapping(payload)
        user_id = _require_user_id(payload)

        content = payload.get('content')
        if not isinstance(content, str) or not content.strip():
            raise ValidationError('Content is required')

        content_type = payload.get('contentType') or DEFAULT_CONTENT_TYPE
        if not isinstance(content_type, str):
            raise ValidationError('contentType must be a string')

        title = payload.get('title')
        if title is not None and not isinstance(title, str):
            raise ValidationError('title must be a string')

        metadata = payload.get('metadata') or {}
        if not isinstance(metadata, dict):
            raise ValidationError('metadata must be an object')

        return cls(user_id=user_id,
                   content=content,
                   content_type=content_type,
                   tags=normalize_tags(_optional_string_list(payload.get('tags'), 'tags')),
                   title=title,
                   metadata=metadata)
