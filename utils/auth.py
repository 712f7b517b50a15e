from hmac import compare_digest
from flask import request, Response, current_app

from errors import AuthenticationFailure, ConfigurationError

REALM = "Prototype"


def check_credentials(auth, username, password):
    """Check a parsed Authorization header against the expected credentials"""
    if auth is None or auth.type != "basic":
        return False
    # compare both parts so timing does not leak which one was wrong
    user_ok = compare_digest((auth.username or "").encode(), username.encode())
    pass_ok = compare_digest((auth.password or "").encode(), password.encode())
    return user_ok and pass_ok


def challenge(realm=REALM):
    """401 response asking the browser for credentials"""
    return Response(
        "Authentication required",
        401,
        {"WWW-Authenticate": f'Basic realm="{realm}"'},
        mimetype="text/plain",
    )


def handle_auth_failure(error):
    current_app.logger.info(f"Basic auth rejected for {error}")
    return challenge(current_app.config.get("AUTH_REALM", REALM))


def basic_auth(username, password):
    """Build a before_request handler enforcing HTTP Basic auth.

    Raises ConfigurationError straight away if either credential is unset,
    so a misconfigured deployment never starts listening.
    """
    if not username or not password:
        raise ConfigurationError(
            "USE_AUTH is enabled but USERNAME and/or PASSWORD are not set"
        )

    def handler():
        if not check_credentials(request.authorization, username, password):
            raise AuthenticationFailure(request.path)
        return None

    return handler
