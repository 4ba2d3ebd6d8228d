"""
Error types for the webhook pipeline.

Verification errors reach the HTTP caller as 400s. Log pipeline errors are
raised at their origin and swallowed (with a log line) at the writer boundary.
"""


class WebhookVerificationError(Exception):
    """Inbound delivery could not be turned into a trusted event."""


class SignatureMismatch(WebhookVerificationError):
    """Signature header did not match the payload and secret."""


class MalformedPayload(WebhookVerificationError):
    """Body is not a UTF-8 JSON object."""


class WebhookLogError(Exception):
    """Best-effort log pipeline failure."""


class DirectoryCreateFailure(WebhookLogError):
    pass


class RotationFailure(WebhookLogError):
    pass


class AppendFailure(WebhookLogError):
    pass
