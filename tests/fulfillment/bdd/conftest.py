"""Shared BDD fixtures and step definitions for the order lifecycle."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then, when

from fulfillment.errors import QuotaExceededError
from fulfillment.order.order import Order


@pytest.fixture()
def outcome():
    """Container for an error raised by a When step."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a registered preview "{preview_id}"'))
def registered_preview(register_preview, preview_id):
    register_preview(preview_id, image_url=f"https://previews.example.com/{preview_id}.png")


@given(parsers.cfparse('checkout "{session_id}" is paid for a "{print_size}" print'), target_fixture="order_id")
@when(parsers.cfparse('checkout "{session_id}" is paid for a "{print_size}" print'), target_fixture="order_id")
def checkout_paid(services, checkout, session_id, print_size):
    command = checkout(
        session_id,
        preview_id="prev-bdd",
        preview_url="https://previews.example.com/prev-bdd.png",
        print_size=print_size,
    )
    result = current_domain.process(command, asynchronous=False)
    services.runner.submit(result.order_id)
    return result.order_id


@given("the image generator is out of credits")
def images_out_of_credits(collaborators):
    collaborators.images.fail_with(QuotaExceededError("replicate", "Insufficient credits"))


@given("the print partner rejects orders")
def partner_rejects(collaborators):
    collaborators.partner.configure(should_succeed=False, status_code=400, failure_body="invalid asset")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order_id, status):
    assert current_domain.repository_for(Order).get(order_id).status == status


@then("the order has a print asset")
def order_has_print_asset(order_id):
    order = current_domain.repository_for(Order).get(order_id)
    assert order.print_asset_url
    assert order.print_asset_key.startswith(f"print-assets/{order_id}/")


@then(parsers.cfparse('the failed stage is "{stage}"'))
def failed_stage_is(order_id, stage):
    assert current_domain.repository_for(Order).get(order_id).order_metadata["failed_stage"] == stage
