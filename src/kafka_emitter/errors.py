class EmitterError(Exception):
    """Base class for emitter errors"""


class TransformError(EmitterError):
    """Block contents disagree with what the transformer expects"""


class CredentialError(EmitterError):
    """Broker auth token could not be generated"""


class ResumptionError(EmitterError):
    """Start head could not be resolved"""


class SourceError(EmitterError):
    """Notification stream failed"""
