HTTP_STATUS_CODES = {
    "OK": 200,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "INTERNAL_SERVER_ERROR": 500,
}

ERROR_MESSAGES = {
    "RESOURCE_NOT_FOUND": "The requested resource could not be found.",
    "PAGE_NOT_FOUND": "Page not found or no access",
}

AUTHENTICATION_MESSAGES = {
    'AUTHENTICATION_REQUIRED': "Authentication Required",
    "NOT_AUTHENTICATED": "Not authenticated",
    "SIGN_IN_AGAIN": "Please sign in again to refresh your session",
    "SESSION_EXPIRED": "Session expired. Please sign in again.",
}
