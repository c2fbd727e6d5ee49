from flask import jsonify, request

from ..constants.service_code import AUTHENTICATION_MESSAGES, ERROR_MESSAGES
from ..services.graph.errors import GraphError, PermissionValidationError
from ..services.leads_service import PageNotFoundError
from .json_response import prepared_response
from .logger import Log


# Handle GraphError (after the retrier has given up)
def handle_graph_error(error: GraphError):
    log_tag = f"[error_handlers.py][handle_graph_error][{request.method}][{request.path}]"
    Log.info(f"{log_tag} {error!r}")

    details = {"code": error.code, "subcode": error.subcode, "kind": error.kind}

    if error.is_auth_error:
        return prepared_response(
            False, "UNAUTHORIZED", AUTHENTICATION_MESSAGES["SESSION_EXPIRED"],
            errors=details, action=AUTHENTICATION_MESSAGES["SIGN_IN_AGAIN"],
        )

    if error.is_permission_error:
        return prepared_response(
            False, "FORBIDDEN", error.user_message,
            errors=details, level="account",
        )

    if error.is_not_found:
        return prepared_response(
            False, "NOT_FOUND", ERROR_MESSAGES["RESOURCE_NOT_FOUND"], errors=details,
        )

    return prepared_response(
        False, "INTERNAL_SERVER_ERROR", error.user_message, errors=details,
    )


# Handle PermissionValidationError (missing scopes or page tasks)
def handle_permission_validation_error(error: PermissionValidationError):
    Log.info(f"[error_handlers.py][handle_permission_validation_error] level={error.level} missing={error.missing}")
    return prepared_response(
        False, "FORBIDDEN", error.message,
        errors={"missing": error.missing},
        level=error.level,
        help_url=error.help_url,
    )


def handle_page_not_found(error: PageNotFoundError):
    return prepared_response(
        False, "FORBIDDEN", ERROR_MESSAGES["PAGE_NOT_FOUND"],
        errors={"page_id": error.page_id, "details": "Make sure you are an admin of this page"},
    )


# Handle ValidationError
def handle_validation_error(error):
    response = {
        "success": False,
        "error": "Validation Error",
        "message": error.messages,
        "status_code": 400  # Bad Request
    }
    return jsonify(response), 400


# Handle TypeError
def handle_type_error(error):
    response = {
        "success": False,
        "error": "Type Error",
        "message": str(error),
        "status_code": 400  # Bad Request
    }
    return jsonify(response), 400


def handle_rate_limit(e):
    # e.description contains whatever was passed as error_message=
    return jsonify({
        "success": False,
        "status_code": 429,
        "error": "Too Many Requests",
        "message": e.description or "Too many requests, please try again later."
    }), 429
