"""
Value serializers.

A serializer turns Python values into the bytes sent to the cluster and
decodes bytes received from it. Anything with serialize()/deserialize()
methods can be passed where a serializer is accepted.
"""

import json
from typing import Any, Protocol


class Serializer(Protocol):
    def serialize(self, value: Any) -> bytes: ...

    def deserialize(self, data: bytes) -> Any: ...


class DefaultJSONSerializer:
    """Compact JSON encoding (no whitespace between separators)."""

    def serialize(self, value: Any) -> bytes:
        return json.dumps(value, separators=(",", ":")).encode("utf-8")

    def deserialize(self, data: bytes) -> Any:
        return json.loads(data)


DEFAULT_SERIALIZER = DefaultJSONSerializer()
