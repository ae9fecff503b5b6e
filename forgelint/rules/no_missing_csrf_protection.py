# State-changing route registrations (POST/PUT/DELETE/PATCH) without CSRF middleware.

from pydantic import AliasChoices, Field

from forgelint.rules.route_middleware import RouteMiddlewareOptions, RouteMiddlewareRule

DEFAULT_CSRF_MIDDLEWARE_PATTERNS = (
    "csrf",
    "csurf",
    "csrfProtection",
    "verifyCsrfToken",
    "csrfToken",
    "validateCsrf",
    "checkCsrf",
    "csrfMiddleware",
)

DEFAULT_PROTECTED_METHODS = ("post", "put", "delete", "patch")


class NoMissingCsrfProtectionOptions(RouteMiddlewareOptions):
    middleware_patterns: tuple[str, ...] = Field(
        default=DEFAULT_CSRF_MIDDLEWARE_PATTERNS,
        validation_alias=AliasChoices("csrfMiddlewarePatterns", "middlewarePatterns", "middleware_patterns"),
    )
    methods: tuple[str, ...] = Field(
        default=DEFAULT_PROTECTED_METHODS,
        validation_alias=AliasChoices("protectedMethods", "methods"),
    )


class NoMissingCsrfProtectionRule(RouteMiddlewareRule):
    """GET/HEAD/OPTIONS are not checked by default; they should not change state."""

    id = "no-missing-csrf-protection"
    name = "Missing CSRF protection"
    description = "Detects state-changing routes registered without CSRF middleware"
    category = "security"
    reference = "CWE-352"
    options = NoMissingCsrfProtectionOptions

    message_kind = "missingCsrfProtection"
    capability = "CSRF protection"
    middleware_snippet = "csrf()"
