"""Composition root: wires settings, collaborators and application services."""

from dataclasses import dataclass

from fulfillment.order.refund import RefundService
from fulfillment.pipeline.collaborators import Collaborators, build_collaborators
from fulfillment.pipeline.orchestrator import FulfillmentOrchestrator
from fulfillment.pipeline.receiver import PaymentNotificationReceiver
from fulfillment.pipeline.runner import InlinePipelineRunner, PipelineRunner
from fulfillment.settings import FulfillmentSettings


@dataclass
class FulfillmentServices:
    settings: FulfillmentSettings
    collaborators: Collaborators
    orchestrator: FulfillmentOrchestrator
    runner: PipelineRunner
    receiver: PaymentNotificationReceiver
    refunds: RefundService


def build_services(
    settings: FulfillmentSettings | None = None,
    collaborators: Collaborators | None = None,
) -> FulfillmentServices:
    settings = settings or FulfillmentSettings.from_env()
    collaborators = collaborators or build_collaborators(settings)
    orchestrator = FulfillmentOrchestrator(collaborators, require_approval=settings.require_print_approval)
    runner = InlinePipelineRunner(orchestrator)
    return FulfillmentServices(
        settings=settings,
        collaborators=collaborators,
        orchestrator=orchestrator,
        runner=runner,
        receiver=PaymentNotificationReceiver(collaborators.gateway, runner),
        refunds=RefundService(collaborators.gateway),
    )
