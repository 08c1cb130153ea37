"""
Domain exceptions raised outside the HTTP pipeline.
"""


class ValidationError(Exception):
    """Form-level validation error."""

    def __init__(self, detail: str = "Validation failed", fields: dict[str, str] | None = None):
        self.fields = fields or {}
        super().__init__(detail)


class NotFoundError(Exception):
    """Record not found."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail)


class StorageQuotaError(Exception):
    """Session storage rejected a write because it is full."""

    def __init__(self, detail: str = "Storage quota exceeded"):
        super().__init__(detail)


class FeatureDisabledError(Exception):
    """Operation is switched off by a feature flag."""

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"Feature '{feature}' is disabled")
