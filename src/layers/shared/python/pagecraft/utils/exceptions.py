"""Custom exception classes for Pagecraft."""


class PagecraftError(Exception):
    """Base exception for all Pagecraft errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
    ):
        """Initialize PagecraftError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP status code for API responses.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API response."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(PagecraftError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        """Initialize NotFoundError.

        Args:
            resource_type: Type of resource (e.g., "SectionTemplate", "Snippet").
            resource_id: ID of the resource that was not found.
            message: Optional custom message.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=message or f"{resource_type} with ID '{resource_id}' not found",
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ValidationError(PagecraftError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[dict] | None = None,
    ):
        """Initialize ValidationError.

        Args:
            message: Error message.
            errors: List of validation errors with field and message.
        """
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
        )

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Create ValidationError from Pydantic ValidationError."""
        errors = []
        if hasattr(exc, "errors"):
            for error in exc.errors():
                errors.append(
                    {
                        "field": ".".join(str(loc) for loc in error.get("loc", [])),
                        "message": error.get("msg", "Invalid value"),
                        "type": error.get("type", "unknown"),
                    }
                )
        return cls(message="Validation failed", errors=errors)


class TemplateValidationError(ValidationError):
    """Raised when a candidate template fails the acceptance gate.

    This is the only hard failure in the template pipeline. The candidate is
    rejected and nothing is persisted.
    """

    def __init__(self, reason: str, field: str | None = None):
        """Initialize TemplateValidationError.

        Args:
            reason: Why the candidate was rejected.
            field: Dotted path of the offending field, if known.
        """
        self.reason = reason
        self.field = field
        super().__init__(
            message=f"Invalid template: {reason}",
            errors=[{"field": field or "", "message": reason}],
        )


class TemplateNotFoundError(NotFoundError):
    """Raised when no section template exists for a type."""

    def __init__(self, tenant_id: str, template_type: str):
        """Initialize TemplateNotFoundError."""
        self.tenant_id = tenant_id
        self.template_type = template_type
        super().__init__(
            resource_type="SectionTemplate",
            resource_id=template_type,
            message=f"Template not found for section type: {template_type}",
        )


class TemplateEvaluationError(PagecraftError):
    """Raised when markup evaluation fails for a section or block.

    Never escapes the render engine; it is converted into a fallback fragment.
    """

    def __init__(self, template_type: str, reason: str):
        """Initialize TemplateEvaluationError."""
        self.template_type = template_type
        self.reason = reason
        super().__init__(
            message=f"Failed to render '{template_type}': {reason}",
            error_code="EVALUATION_ERROR",
            status_code=500,
            details={"template_type": template_type},
        )


class ForbiddenError(PagecraftError):
    """Raised when user lacks permission for an action."""

    def __init__(
        self,
        message: str = "You don't have permission to perform this action",
        resource_type: str | None = None,
        action: str | None = None,
    ):
        """Initialize ForbiddenError."""
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if action:
            details["action"] = action

        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403,
            details=details if details else None,
        )


class ConflictError(PagecraftError):
    """Raised when there's a conflict (e.g., duplicate, optimistic lock failure)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        conflict_type: str | None = None,
    ):
        """Initialize ConflictError."""
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details={"conflict_type": conflict_type} if conflict_type else None,
        )


class UnauthorizedError(PagecraftError):
    """Raised when the request carries no usable identity."""

    def __init__(self, message: str = "Authentication required"):
        """Initialize UnauthorizedError."""
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED",
            status_code=401,
        )
