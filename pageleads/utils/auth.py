from functools import wraps

from flask import g, request
from flask_smorest import abort

from ..constants.service_code import AUTHENTICATION_MESSAGES


def token_required(f):
    """
    Require `Authorization: Bearer <facebook user token>` and expose the token
    as g.access_token. The token is opaque here; Graph decides if it is valid.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            abort(401, message=AUTHENTICATION_MESSAGES["AUTHENTICATION_REQUIRED"])

        parts = auth_header.split()
        if len(parts) != 2 or not parts[1]:
            abort(401, message=AUTHENTICATION_MESSAGES["NOT_AUTHENTICATED"])

        g.access_token = parts[1]
        return f(*args, **kwargs)

    return decorated
