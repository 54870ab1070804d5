from dataclasses import dataclass, field
from typing import Any, Callable, Sequence, Union

from libs.db.procedures import ProcedureError, ProcedureRow

Response = Union[list[ProcedureRow], BaseException, Callable[[list[Any]], Any]]


def row(**values: Any) -> ProcedureRow:
    return ProcedureRow.from_mapping(values)


def numbered_row(*values: Any) -> ProcedureRow:
    """A row whose columns come back as "1", "2", ... like some drivers return them."""
    return ProcedureRow.from_mapping({str(i + 1): v for i, v in enumerate(values)})


def procedure_error(procedure: str = "proc", message: str = "connection reset") -> ProcedureError:
    return ProcedureError(procedure, "252", RuntimeError(message))


@dataclass
class Call:
    procedure: str
    tenant_id: str
    params: list[Any]


@dataclass
class FakeInvoker:
    """
    Records every procedure call and answers from canned responses.

    A response is a list of rows, an exception to raise, or a callable that
    receives the params and returns rows (or raises).
    """

    responses: dict[str, Response] = field(default_factory=dict)
    calls: list[Call] = field(default_factory=list)

    def respond(self, procedure: str, response: Response) -> None:
        self.responses[procedure] = response

    async def invoke(
        self, procedure: str, tenant_id: str, params: Sequence[Any] = ()
    ) -> list[ProcedureRow]:
        params = list(params)
        self.calls.append(Call(procedure, tenant_id, params))
        response = self.responses.get(procedure, [])
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return list(response(params) or [])
        return list(response)

    def called(self, procedure: str) -> list[Call]:
        return [c for c in self.calls if c.procedure == procedure]

    @property
    def procedures(self) -> list[str]:
        return [c.procedure for c in self.calls]
