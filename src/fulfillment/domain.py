"""Fulfillment bounded context: paid checkouts to printed, shipped artwork.

Owns the Order record and its status. A confirmed payment starts a fixed
pipeline of external calls (HD image, print file, asset upload, partner
submission); operators re-enter it through retry, regenerate, approve and
refund.
"""

from protean.domain import Domain

fulfillment = Domain(name="fulfillment")
