"""Pydantic entity for manufacturing node records.

ID scheme
---------
`Node.id_` is a string identifier.

- New nodes default to the local creation instant at second resolution,
  formatted as a fixed-width 14-digit string `YYYYMMDDhhmmss`, so
  lexicographic order over ids matches creation order within one timezone.
- An id is derived only when none is given. Ids loaded from disk are treated
  as opaque strings and are not re-validated against this format, but an
  explicit empty id is rejected.

Note: because the id only has second resolution, two nodes created within the
same second collide. Callers creating nodes in bulk should pass explicit ids.

On-disk field names
-------------------
The JSON document uses `id` and `uns_address`; in Python these are `id_` and
`address`. Dump with `by_alias=True` to get the on-disk shape.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NODE_ID_FORMAT = "%Y%m%d%H%M%S"


def _now() -> datetime:
    return datetime.now().astimezone()


def node_id_from_created_at(created_at: datetime) -> str:
    """Return the 14-digit id derived from `created_at` (seconds resolution)."""

    return created_at.strftime(NODE_ID_FORMAT)


class Node(BaseModel):
    """One manufacturing node.

    Notes:
    - `title` must be non-blank. Title uniqueness is a collection-level rule
      checked through `NodeStore.is_title_unique`, not here.
    - `updated_at=None` at construction means "same as `created_at`".
    """

    model_config = ConfigDict(validate_by_name=True, validate_by_alias=True)

    id_: str = Field(default="", alias="id")
    title: str
    description: str = ""
    operations: list[str] = Field(default_factory=list)
    address: str = Field(default="", alias="uns_address")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        title: str,
        description: str = "",
        operations: list[str] | None = None,
        address: str = "",
    ) -> Node:
        """Build a brand-new node stamped with the current instant."""

        now = _now()
        return cls(
            id_=node_id_from_created_at(now),
            title=title,
            description=description,
            operations=list(operations or []),
            address=address,
            created_at=now,
            updated_at=now,
        )

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value

    @field_validator("operations", mode="before")
    @classmethod
    def _null_operations(cls, value: object) -> object:
        # Older files store a node without operations as `null`.
        return [] if value is None else value

    @field_validator("operations")
    @classmethod
    def _drop_empty_operations(cls, value: list[str]) -> list[str]:
        return [op for op in value if op.strip()]

    @field_validator("created_at", "updated_at")
    @classmethod
    def _make_aware(cls, value: datetime | None) -> datetime | None:
        # Naive timestamps are taken as local time.
        if value is None or value.tzinfo is not None:
            return value
        return value.astimezone()

    @model_validator(mode="after")
    def _finalize(self) -> Node:
        if "id_" not in self.model_fields_set:
            self.id_ = node_id_from_created_at(self.created_at)
        elif not self.id_:
            raise ValueError("id must not be empty")
        if self.updated_at is None:
            self.updated_at = self.created_at
        if self.updated_at < self.created_at:
            raise ValueError(
                f"updated_at ({self.updated_at.isoformat()}) is earlier than "
                f"created_at ({self.created_at.isoformat()})"
            )
        return self

    def to_json_dict(self) -> dict[str, object]:
        """Return the on-disk JSON object for this node (stable key order)."""

        return self.model_dump(mode="json", by_alias=True)
