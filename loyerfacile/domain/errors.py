from __future__ import annotations


class LifecycleError(ValueError):
    """Lease or payment transition that the rental flow does not support."""


class PaymentImmutableError(LifecycleError):
    """A succeeded payment cannot be changed."""


class CollaboratorError(RuntimeError):
    """Outbound call (bucket, geocoder, payment aggregator) failed."""


class StorageError(CollaboratorError):
    pass


class GeocodingError(CollaboratorError):
    pass


class PaymentGatewayError(CollaboratorError):
    pass
