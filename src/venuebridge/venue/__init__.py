"""Trading venue (Orderly) client and request signing."""

from venuebridge.venue.client import (
    AssetHistoryEntry,
    OrderlyClient,
    VenueCredentials,
    build_internal_transfer_message,
    build_withdraw_message,
)
from venuebridge.venue.signer import RequestSigner, SignedRequest, serialize_body

__all__ = [
    "AssetHistoryEntry",
    "OrderlyClient",
    "VenueCredentials",
    "build_internal_transfer_message",
    "build_withdraw_message",
    "RequestSigner",
    "SignedRequest",
    "serialize_body",
]
