import secrets

from flask import Request, session

CSRF_SESSION_KEY = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"
MUTATING_METHODS = ("POST", "PUT", "PATCH", "DELETE")
# Probes and static files never carry a session.
UNGUARDED_PATH_PREFIXES = ("/static/", "/health", "/healthz")


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def csrf_exempt(req: Request) -> bool:
    """Reads, probes and the sign-in form skip the token check."""
    if req.method not in MUTATING_METHODS or req.path.startswith(UNGUARDED_PATH_PREFIXES):
        return True
    return (req.endpoint or "").startswith("auth.")


def submitted_csrf_token(req: Request) -> str | None:
    """Header for fetch() callers, form field for pages, JSON key as a last resort."""
    token = req.headers.get(CSRF_HEADER) or req.form.get(CSRF_SESSION_KEY)
    if not token and req.is_json:
        data = req.get_json(silent=True)
        if isinstance(data, dict):
            token = data.get(CSRF_SESSION_KEY)
    return token


def validate_csrf(req: Request) -> bool:
    token = submitted_csrf_token(req)
    expected = session.get(CSRF_SESSION_KEY)
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))
