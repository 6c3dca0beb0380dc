"""Fake print partner that accepts every order unless told otherwise."""

from uuid import uuid4

from fulfillment.errors import PartnerError
from fulfillment.partner.port import PartnerOrderRequest, PrintPartner


class FakePrintPartner(PrintPartner):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.status_code: int = 400
        self.failure_body: str = '{"outcome": "ValidationFailed"}'
        self.submissions: list[PartnerOrderRequest] = []

    def configure(
        self,
        should_succeed: bool,
        status_code: int = 400,
        failure_body: str = '{"outcome": "ValidationFailed"}',
    ) -> None:
        self.should_succeed = should_succeed
        self.status_code = status_code
        self.failure_body = failure_body

    def submit_order(self, request: PartnerOrderRequest) -> str:
        self.submissions.append(request)
        if not self.should_succeed:
            raise PartnerError(self.status_code, self.failure_body)
        return f"ord_fake_{uuid4().hex[:10]}"
