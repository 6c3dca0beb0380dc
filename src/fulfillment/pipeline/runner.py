"""How a paid order's pipeline gets scheduled.

``InlinePipelineRunner`` runs it synchronously inside the request that
received the payment notification. A queue-backed runner can replace it
without touching the orchestrator or the order state machine.
"""

from abc import ABC, abstractmethod

from fulfillment.order.order import Order
from fulfillment.pipeline.orchestrator import FulfillmentOrchestrator


class PipelineRunner(ABC):
    @abstractmethod
    def submit(self, order_id: str) -> Order | None:
        """Schedule the pipeline for ``order_id``.

        Returns the order when the run completed synchronously, else None.
        """
        ...


class InlinePipelineRunner(PipelineRunner):
    def __init__(self, orchestrator: FulfillmentOrchestrator) -> None:
        self.orchestrator = orchestrator

    def submit(self, order_id: str) -> Order:
        return self.orchestrator.run(order_id)
