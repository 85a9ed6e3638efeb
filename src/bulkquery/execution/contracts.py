"""
Contract definitions for bulk query execution.

These pydantic models are what flows between the Target Executor, the
Schema Reconciler and the Fan-Out Coordinator, and what the presentation
layer finally receives.
"""
from __future__ import annotations

from typing import Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from bulkquery.common.errors import ErrorCode, TargetError

SERVER_COLUMN = "Server"
DATABASE_COLUMN = "Database"

Row = Tuple[Any, ...]


class ResultColumn(BaseModel):
    """Column metadata for a ResultSet."""

    name: str
    type: str = Field(default="unknown", description="Driver-reported column type.")
    ordinal: int
    nullable: Optional[bool] = Field(default=None, description="None when the driver does not report it.")

    model_config = ConfigDict(frozen=True)

    def same_shape(self, other: "ResultColumn") -> bool:
        return (
            self.ordinal == other.ordinal
            and self.name == other.name
            and self.type == other.type
            and self.nullable == other.nullable
        )


Schema = List[ResultColumn]


def provenance_columns() -> Schema:
    return [
        ResultColumn(name=SERVER_COLUMN, type="str", ordinal=0, nullable=False),
        ResultColumn(name=DATABASE_COLUMN, type="str", ordinal=1, nullable=False),
    ]


class ResultSet(BaseModel):
    """A schema plus rows aligned to it."""

    columns: Schema = Field(default_factory=list)
    rows: List[Row] = Field(default_factory=list)

    model_config = ConfigDict(ser_json_bytes="base64")

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]

    @property
    def row_count(self) -> int:
        return len(self.rows)


class TargetSuccess(BaseModel):
    kind: Literal["success"] = "success"
    target: str
    result: ResultSet
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return True


class TargetFailure(BaseModel):
    kind: Literal["failure"] = "failure"
    target: str
    message: str
    error_code: ErrorCode
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return False

    def to_error(self) -> TargetError:
        return TargetError(target=self.target, message=self.message, error_code=self.error_code)


TargetOutcome = Union[TargetSuccess, TargetFailure]


class AggregateResult(BaseModel):
    """The reconciled outcome of one bulk query invocation.

    ``result`` is None when no target succeeded, which the presentation layer
    must render differently from a result with a schema and zero rows.
    """

    result: Optional[ResultSet] = None
    canonical_target: Optional[str] = None
    messages: List[str] = Field(default_factory=list)
    errors: List[TargetError] = Field(default_factory=list)
    succeeded: int = 0
    failed: int = 0

    model_config = ConfigDict(ser_json_bytes="base64")

    @property
    def columns(self) -> Optional[Schema]:
        return self.result.columns if self.result is not None else None

    @property
    def rows(self) -> List[Row]:
        return self.result.rows if self.result is not None else []

    @property
    def row_count(self) -> int:
        return len(self.rows)
