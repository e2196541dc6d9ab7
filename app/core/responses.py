"""Success envelope shared by every route: {"success": true, "data": ...}."""

from typing import Any

from fastapi.encoders import jsonable_encoder


def ok(data: Any = None, **extra: Any) -> dict[str, Any]:
    """
    Wrap a payload in the success envelope.

    Pydantic models inside are rendered with their camelCase aliases.
    """
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = jsonable_encoder(data, by_alias=True)
    body.update(jsonable_encoder(extra, by_alias=True))
    return body
