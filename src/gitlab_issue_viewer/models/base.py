"""Base model for GitLab API responses."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ..exceptions import DecodeError

M = TypeVar("M", bound="GitLabModel")


class GitLabModel(BaseModel):
    """Immutable record parsed from a GitLab API payload.

    Unknown keys are dropped, missing keys take their defaults, and values of
    the wrong type fail validation instead of passing through.
    """

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_api(cls: type[M], data: Any) -> M:
        """Validate one API object, raising :class:`DecodeError` on a bad shape."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            msg = f"Malformed {cls.__name__} payload: {e}"
            raise DecodeError(msg) from e

    @classmethod
    def list_from_api(cls: type[M], data: Any) -> list[M]:
        if not isinstance(data, list):
            msg = f"Expected a list of {cls.__name__}, got {type(data).__name__}"
            raise DecodeError(msg)
        return [cls.from_api(item) for item in data]
