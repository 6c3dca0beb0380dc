"""Fulfillment orchestrator: drives an order through the print pipeline.

Stages, in order: HD image, print file, asset upload, then either a hold
for operator approval or submission to the print partner. The order is
saved after every stage outside any unit of work, so a crash leaves the
last completed stage on record and an operator retry can pick it up.

Collaborator failures never escape ``run``: they are written to the order
as ``last_error``/``failed_stage`` and the order moves to FAILED. Manual
operations (``regenerate``, ``approve``) record the failure the same way
and then re-raise it so the operator sees it.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from fulfillment.errors import ConfigurationError
from fulfillment.order.order import Order, OrderStatus, PipelineStage
from fulfillment.partner.port import PartnerOrderRequest, Recipient
from fulfillment.pipeline.collaborators import Collaborators
from fulfillment.printfile.port import PrintFile
from fulfillment.storage.port import UploadResult

logger = structlog.get_logger(__name__)

_RUNNABLE_STATUSES = {OrderStatus.PAID, OrderStatus.FAILED}


class StageFailure(Exception):
    """A pipeline stage failed; wraps the collaborator error with its stage."""

    def __init__(self, stage: PipelineStage, error: Exception) -> None:
        self.stage = stage
        self.error = error
        super().__init__(f"{stage.value}: {error}")


class FulfillmentOrchestrator:
    def __init__(self, collaborators: Collaborators, require_approval: bool = True) -> None:
        self.collaborators = collaborators
        self.require_approval = require_approval

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------
    @staticmethod
    def _load(order_id: str) -> Order:
        return current_domain.repository_for(Order).get(order_id)

    @staticmethod
    def _save(order: Order) -> Order:
        repo = current_domain.repository_for(Order)
        repo.add(order)
        return repo.get(order.order_id)

    def _fail(self, order: Order, stage: PipelineStage, error: Exception) -> Order:
        logger.error(
            "Fulfillment stage failed",
            order_id=order.order_id,
            stage=stage.value,
            error=str(error),
            error_type=type(error).__name__,
        )
        order.mark_failed(str(error), stage)
        return self._save(order)

    def _fail_if_unconfigured(self, order: Order) -> Order | None:
        missing = self.collaborators.missing_configuration()
        if not missing:
            return None
        return self._fail(order, PipelineStage.CONFIGURATION, ConfigurationError(missing))

    # -------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------
    def _hd_image(self, order: Order) -> str:
        metadata = order.order_metadata or {}
        try:
            return self.collaborators.images.generate_hd(
                metadata.get("preview_url"),
                metadata.get("style"),
                metadata.get("refined_prompt"),
            )
        except Exception as exc:
            raise StageFailure(PipelineStage.HD_IMAGE, exc) from exc

    def _print_file(self, order: Order, hd_image_url: str) -> PrintFile:
        try:
            return self.collaborators.composer.compose(hd_image_url, order.print_size, order.order_id)
        except Exception as exc:
            raise StageFailure(PipelineStage.PRINT_FILE, exc) from exc

    def _upload(self, order: Order, print_file: PrintFile) -> UploadResult:
        try:
            return self.collaborators.storage.upload(
                print_file.buffer, print_file.filename, order.order_id, print_file.content_type
            )
        except Exception as exc:
            raise StageFailure(PipelineStage.UPLOAD, exc) from exc

    def _generate(self, order: Order) -> Order:
        try:
            hd_image_url = self._hd_image(order)
            order.record_hd_image(hd_image_url)
            order = self._save(order)

            upload = self._upload(order, self._print_file(order, hd_image_url))
        except StageFailure as failure:
            return self._fail(order, failure.stage, failure.error)

        order.record_print_asset(upload.url, upload.key)
        order = self._save(order)

        order.complete_generation(require_approval=self.require_approval)
        order = self._save(order)
        if self.require_approval:
            logger.info("Order awaiting approval", order_id=order.order_id)
            return order

        order, _ = self._submit(order)
        return order

    def _partner_request(self, order: Order) -> PartnerOrderRequest:
        address = order.shipping_address
        return PartnerOrderRequest(
            order_id=order.order_id,
            sku=order.sku,
            asset_url=order.print_asset_url,
            recipient=Recipient(
                name=address.name,
                email=order.email,
                line1=address.line1,
                line2=address.line2,
                city=address.city,
                postal_code=address.postal_code,
                country=address.country,
            ),
            idempotency_key=f"{order.order_id}:{order.print_asset_key}",
        )

    def _submit(self, order: Order) -> tuple[Order, Exception | None]:
        """Submit a PRINT_READY order. A rejection keeps PRINT_READY and the asset."""
        try:
            partner_order_id = self.collaborators.partner.submit_order(self._partner_request(order))
        except Exception as exc:
            logger.error("Print partner submission failed", order_id=order.order_id, error=str(exc))
            order.record_partner_failure(str(exc))
            return self._save(order), exc

        order.record_partner_submission(partner_order_id)
        order = self._save(order)
        logger.info("Order submitted for printing", order_id=order.order_id, partner_order_id=partner_order_id)
        return order, None

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    def run(self, order_id: str) -> Order:
        """Run the pipeline for a PAID order, or a FAILED one being re-delivered."""
        order = self._load(order_id)
        if order.current_status not in _RUNNABLE_STATUSES:
            raise ValidationError({"status": [f"Order {order_id} cannot start fulfillment from {order.status}"]})

        failed = self._fail_if_unconfigured(order)
        if failed is not None:
            return failed

        order.start_generation()
        order = self._save(order)
        logger.info("Fulfillment started", order_id=order_id)
        return self._generate(order)

    def retry(self, order_id: str, requested_by: str | None = None) -> Order:
        """Clear every artifact and re-run the pipeline from the HD image stage."""
        order = self._load(order_id)
        order.assert_retryable()

        failed = self._fail_if_unconfigured(order)
        if failed is not None:
            return failed

        order.reset_for_retry(requested_by)
        order = self._save(order)
        logger.info("Fulfillment retried", order_id=order_id, requested_by=requested_by)
        return self._generate(order)

    def regenerate(self, order_id: str, requested_by: str | None = None) -> Order:
        """Replace the HD image and print asset of a PRINT_READY order.

        The new artifacts are written only if every stage succeeds; on
        failure the order returns to PRINT_READY with its previous asset and
        the error is re-raised.
        """
        order = self._load(order_id)
        if order.current_status != OrderStatus.PRINT_READY:
            raise ValidationError(
                {"status": [f"Order must be PRINT_READY to regenerate (current: {order.status})"]}
            )
        missing = self.collaborators.missing_configuration()
        if missing:
            raise ConfigurationError(missing)

        order.begin_regeneration(requested_by)
        order = self._save(order)

        try:
            hd_image_url = self._hd_image(order)
            upload = self._upload(order, self._print_file(order, hd_image_url))
        except StageFailure as failure:
            logger.error(
                "Regeneration failed, keeping previous asset",
                order_id=order_id,
                stage=failure.stage.value,
                error=str(failure.error),
            )
            order.revert_regeneration(str(failure.error))
            self._save(order)
            raise failure.error from failure

        order.complete_regeneration(hd_image_url, upload.url, upload.key, requested_by)
        logger.info("Order regenerated", order_id=order_id)
        return self._save(order)

    def approve(self, order_id: str, approved_by: str | None = None) -> Order:
        """Approve the print asset and submit the order to the print partner.

        On a partner rejection the order stays PRINT_READY with the error
        recorded, and the error is re-raised.
        """
        order = self._load(order_id)
        order.approve(approved_by)
        missing = self.collaborators.partner.missing_configuration()
        if missing:
            raise ConfigurationError(missing)
        order = self._save(order)

        order, error = self._submit(order)
        if error is not None:
            raise error
        return order
