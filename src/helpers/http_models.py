"""Type definitions for HTTP responses."""

from typing import Any, TypeAlias


# JSON object as returned by the subgraph and the rewards API
JsonObject: TypeAlias = dict[str, Any]

# Type for JSON responses (can be object, array, or None for errors)
JsonResponse: TypeAlias = dict[str, Any] | list[Any] | None

__all__ = ["JsonObject", "JsonResponse"]
