# Route registrations (app.get, router.post, ...) without an authentication middleware.

from pydantic import AliasChoices, Field

from forgelint.rules.route_middleware import RouteMiddlewareOptions, RouteMiddlewareRule

DEFAULT_AUTH_MIDDLEWARE_PATTERNS = (
    "authenticate",
    "auth",
    "requireAuth",
    "isAuthenticated",
    "verifyToken",
    "checkAuth",
    "ensureAuthenticated",
    "passport.authenticate",
    "jwt",
    "session",
)

DEFAULT_ROUTE_METHODS = ("get", "post", "put", "delete", "patch", "all")


class NoMissingAuthenticationOptions(RouteMiddlewareOptions):
    middleware_patterns: tuple[str, ...] = Field(
        default=DEFAULT_AUTH_MIDDLEWARE_PATTERNS,
        validation_alias=AliasChoices("authMiddlewarePatterns", "middlewarePatterns", "middleware_patterns"),
    )
    methods: tuple[str, ...] = Field(
        default=DEFAULT_ROUTE_METHODS,
        validation_alias=AliasChoices("routeHandlerPatterns", "methods"),
    )


class NoMissingAuthenticationRule(RouteMiddlewareRule):
    id = "no-missing-authentication"
    name = "Missing authentication"
    description = "Detects route handlers registered without an authentication middleware"
    category = "security"
    reference = "CWE-287"
    options = NoMissingAuthenticationOptions

    message_kind = "missingAuthentication"
    capability = "authentication"
    middleware_snippet = "authenticate"
