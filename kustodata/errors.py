"""Error types raised by the client and decoded from service error frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping


class Op(Enum):
    """The operation during which an error happened."""

    UNKNOWN = "Unknown"
    QUERY = "Query"
    MGMT = "Mgmt"
    TABLE_ACCESS = "TableAccess"


class KustoError(Exception):
    """An error raised by the client, tagged with the operation and a kind."""

    class Kind(Enum):
        """The category of a client error."""

        OTHER = "Other"
        CLIENT_ARGS = "ClientArgs"
        INTERNAL = "Internal"
        WRONG_COLUMN_TYPE = "WrongColumnType"
        WRONG_TABLE_KIND = "WrongTableKind"

    def __init__(
        self,
        op: Op,
        kind: "KustoError.Kind",
        message: str,
        *,
        permanent: bool = False,
    ) -> None:
        super().__init__(message)
        self.op = op
        self.kind = kind
        self.message = message
        self.permanent = permanent

    def __str__(self) -> str:
        return f"Op({self.op.value}): Kind({self.kind.value}): {self.message}"


@dataclass(frozen=True)
class ErrorContext:
    """Diagnostic context attached to a service error."""

    timestamp: str = ""
    service_alias: str = ""
    machine_name: str = ""
    process_name: str = ""
    process_id: int = 0
    thread_id: int = 0
    client_request_id: str = ""
    activity_id: str = ""
    sub_activity_id: str = ""
    activity_type: str = ""
    parent_activity_id: str = ""
    activity_stack: str = ""

    def __str__(self) -> str:
        return (
            f"ErrorContext(Timestamp={self.timestamp}, ServiceAlias={self.service_alias}, "
            f"MachineName={self.machine_name}, ProcessName={self.process_name}, "
            f"ProcessId={self.process_id}, ThreadId={self.thread_id}, "
            f"ClientRequestId={self.client_request_id}, ActivityId={self.activity_id}, "
            f"SubActivityId={self.sub_activity_id}, ActivityType={self.activity_type}, "
            f"ParentActivityId={self.parent_activity_id}, ActivityStack={self.activity_stack})"
        )


@dataclass(frozen=True)
class ErrorMessage:
    """The body of a service error."""

    code: str = ""
    message: str = ""
    description: str = ""
    error_type: str = ""
    context: ErrorContext = field(default_factory=ErrorContext)
    is_permanent: bool = False

    def __str__(self) -> str:
        permanent = "true" if self.is_permanent else "false"
        return (
            f"ErrorMessage(Code={self.code}, Message={self.message}, Type={self.error_type}, "
            f"ErrorContext={self.context}, IsPermanent={permanent})"
        )


class OneApiError(Exception):
    """A structured error reported by the service inside a result stream."""

    def __init__(self, error_message: ErrorMessage) -> None:
        super().__init__(error_message.message)
        self.error_message = error_message

    def __str__(self) -> str:
        return f"OneApiError(Error={self.error_message})"


class CombinedError(Exception):
    """Several distinct errors reported together."""

    def __init__(self, errors: Iterable[BaseException] = ()) -> None:
        super().__init__()
        self.errors: list[BaseException] = []
        for error in errors:
            self.add(error)

    def add(self, error: BaseException) -> None:
        """Add an error unless an identical one is already held."""
        key = (type(error), str(error))
        if all((type(e), str(e)) != key for e in self.errors):
            self.errors.append(error)

    def unwrap(self) -> BaseException | None:
        """Return None when empty, the sole error when one, otherwise self."""
        if not self.errors:
            return None
        if len(self.errors) == 1:
            return self.errors[0]
        return self

    def __str__(self) -> str:
        return "; ".join(str(e) for e in self.errors)


def one_api_error_from_dict(data: Mapping[str, Any]) -> OneApiError:
    """Build a OneApiError from its decoded JSON form."""
    body = data.get("error") or {}
    ctx = body.get("@context") or {}
    context = ErrorContext(
        timestamp=str(ctx.get("timestamp", "")),
        service_alias=str(ctx.get("serviceAlias", "")),
        machine_name=str(ctx.get("machineName", "")),
        process_name=str(ctx.get("processName", "")),
        process_id=int(ctx.get("processId", 0)),
        thread_id=int(ctx.get("threadId", 0)),
        client_request_id=str(ctx.get("clientRequestId", "")),
        activity_id=str(ctx.get("activityId", "")),
        sub_activity_id=str(ctx.get("subActivityId", "")),
        activity_type=str(ctx.get("activityType", "")),
        parent_activity_id=str(ctx.get("parentActivityId", "")),
        activity_stack=str(ctx.get("activityStack", "")),
    )
    message = ErrorMessage(
        code=str(body.get("code", "")),
        message=str(body.get("message", "")),
        description=str(body.get("@message", "")),
        error_type=str(body.get("@type", "")),
        context=context,
        is_permanent=bool(body.get("@permanent", False)),
    )
    return OneApiError(message)


def combine_one_api_errors(errors: Iterable[BaseException]) -> BaseException | None:
    """Merge errors into one, dropping duplicates; None when there are none."""
    return CombinedError(errors).unwrap()