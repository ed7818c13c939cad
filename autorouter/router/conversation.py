"""Conversation payload parsing.

The router snapshots the request body as a compact conversation before and
after it applies a preset. Any callable matching :class:`ConversationParser`
can be plugged in; :func:`parse_compact_convo` is the default.
"""

from __future__ import annotations

import copy
from typing import Any, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from autorouter.errors import ConversationParseError


class ConversationParser(Protocol):
    def __call__(
        self,
        *,
        endpoint: str,
        endpoint_type: Optional[str],
        conversation: Mapping[str, Any],
    ) -> dict[str, Any]: ...


class ConversationPayload(BaseModel):
    """Typed view of the fields the router reads; everything else passes through."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    endpoint: str
    endpoint_type: Optional[str] = Field(default=None, alias="endpointType")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    model: Optional[str] = None
    spec: Optional[str] = None
    text: Optional[str] = None
    thinking: Optional[Any] = None
    web_search: Optional[Any] = None
    messages: Optional[list[Any]] = None
    files: Optional[list[Any]] = None
    attachments: Optional[list[Any]] = None


def parse_compact_convo(
    *,
    endpoint: str,
    endpoint_type: Optional[str] = None,
    conversation: Mapping[str, Any],
) -> dict[str, Any]:
    """
    Validate a request body and return a compact, detached conversation dict.

    ``None`` values are dropped. The result shares no mutable state with the
    input, so later mutations of the body do not leak into the snapshot.

    Raises:
        ConversationParseError: If the body is not a mapping or a known field
            has the wrong type.
    """
    if not isinstance(conversation, Mapping):
        raise ConversationParseError("conversation payload must be an object")

    data = copy.deepcopy(dict(conversation))
    data["endpoint"] = endpoint
    data["endpointType"] = endpoint_type or endpoint

    try:
        payload = ConversationPayload.model_validate(data)
    except ValidationError as e:
        raise ConversationParseError(f"Invalid conversation payload: {e}") from e

    return payload.model_dump(by_alias=True, exclude_none=True)
