from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Generic, TypeVar

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    JsonValue,
    StringConstraints,
)
from pydantic.alias_generators import to_camel

from ctxstore.constants import MAX_READ_LIMIT
from ctxstore.infra.errors import ContextStoreError
from ctxstore.tools.result import ToolResult

if TYPE_CHECKING:
    from ctxstore.storage.persistence import PersistenceManager

logger = structlog.get_logger()

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]
Metadata = dict[str, JsonValue]


class ToolKind(StrEnum):
    """Whether a tool mutates the store or only reads it."""

    write = "write"
    read = "read"


class ToolArgs(BaseModel):
    """Base argument model for every tool.

    Fields are snake_case in Python and camelCase on the wire. Validation is
    strict: a string field rejects numbers, an integer field rejects strings.
    Unknown keys are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        strict=True,
        extra="ignore",
        frozen=True,
    )

    project_name: NonEmptyStr


class ReadArgs(ToolArgs):
    """Arguments shared by read tools. A missing limit means the read's own default."""

    limit: int | None = Field(default=None, ge=1, le=MAX_READ_LIMIT)

    def limit_kwargs(self) -> dict[str, int]:
        return {"limit": self.limit} if self.limit is not None else {}


ArgsT = TypeVar("ArgsT", bound=ToolArgs)


class BaseTool(ABC, Generic[ArgsT]):
    """Abstract base class for persistence-backed tools.

    A tool is bound to its PersistenceManager at construction. The router
    validates raw arguments against ``args_model`` before calling ``execute``;
    ``execute`` never raises and always returns a ToolResult.
    """

    def __init__(self, store: PersistenceManager) -> None:
        self._store = store

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name advertised to clients."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def args_model(self) -> type[ArgsT]:
        """Pydantic model the raw arguments are validated against."""
        ...

    @property
    @abstractmethod
    def failure_label(self) -> str:
        """Gerund phrase used in error text, e.g. 'storing context'."""
        ...

    @property
    def kind(self) -> ToolKind:
        return ToolKind.read

    @property
    def parameters(self) -> dict:
        """JSON Schema of the arguments, camelCase property names."""
        return self.args_model.model_json_schema(by_alias=True)

    async def execute(self, args: ArgsT) -> ToolResult:
        """Run the tool, converting any failure into an error result."""
        try:
            return ToolResult.ok(await self.run(args))
        except ContextStoreError as e:
            logger.warning(
                "tool_failed",
                tool_name=self.name,
                project=args.project_name,
                code=e.code,
                error=str(e),
            )
            return ToolResult.error(f"Error {self.failure_label}: {e}")
        except Exception as e:
            logger.exception("tool_unexpected_error", tool_name=self.name)
            return ToolResult.error(f"Error {self.failure_label}: {e}")

    @abstractmethod
    async def run(self, args: ArgsT) -> str:
        """Perform the operation and return the response text."""
        ...
