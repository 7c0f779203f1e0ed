"""
Input payloads for mutations.

Each mutation takes one of these pydantic models. Validation is limited to
scalar checks (types, required fields, no unknown fields); referential and
uniqueness rules live in the mutation service.

Field names accept both the attribute name and the wire alias
(``is_published`` / ``isPublished``).

Update inputs distinguish "absent" from "present": only fields the caller
actually sent are applied, see BaseInput.changes().
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, FrozenSet, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

InputT = TypeVar("InputT", bound="BaseInput")


class BaseInput(BaseModel):
    """Common configuration for mutation inputs."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        strict=True,
        frozen=True,
    )

    # Fields that may be explicitly set to null to clear them
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset()

    def changes(self) -> Dict[str, Any]:
        """Return the fields the caller provided, keyed by attribute name.

        An explicit null is kept only for NULLABLE fields; for the others it
        counts as absent.
        """
        provided = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is not None or name in self.NULLABLE:
                provided[name] = value
        return provided


class CreateUserInput(BaseInput):
    name: str
    email: str
    age: Optional[int] = None


class UpdateUserInput(BaseInput):
    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None

    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"age"})


class CreatePostInput(BaseInput):
    title: str
    body: str
    is_published: bool = Field(alias="isPublished")
    author: str


class UpdatePostInput(BaseInput):
    title: Optional[str] = None
    body: Optional[str] = None
    is_published: Optional[bool] = Field(default=None, alias="isPublished")


class CreateCommentInput(BaseInput):
    text: str
    author: str
    post: str


class UpdateCommentInput(BaseInput):
    text: Optional[str] = None


def coerce_input(
    model: Type[InputT],
    data: Union[InputT, Mapping[str, Any]],
) -> InputT:
    """Accept either a ready input model or a raw mapping.

    Raises:
        pydantic.ValidationError: If the mapping fails scalar validation
    """
    if isinstance(data, model):
        return data
    return model.model_validate(dict(data))
