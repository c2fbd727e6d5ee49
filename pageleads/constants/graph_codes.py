# pageleads/constants/graph_codes.py
#
# Facebook Graph API error taxonomy.
#
# Reference: https://developers.facebook.com/docs/graph-api/guides/error-handling
#
# transient = expected to succeed if the same request is sent again later.
# Auth and permission failures need the user to act (sign in again, grant a
# scope or a page task) and are never transient.

# -------------------------------------------------------------------
# Error codes
# -------------------------------------------------------------------

AUTH_ERROR_CODES = frozenset({
    102,   # API Session (login status or token has expired)
    190,   # Invalid OAuth 2.0 access token
    463,   # Session has expired
    467,   # Invalid access token
})

PERMISSION_ERROR_CODES = frozenset({
    10,    # Application does not have permission for this action
    *range(200, 300),  # 200-299 permission errors
})

NOT_FOUND_ERROR_CODE = 100  # Invalid parameter / unknown object

RATE_LIMIT_ERROR_CODES = frozenset({
    4,     # Application request limit reached
    17,    # User request limit reached
    32,    # Page-level throttling
    613,   # Calls within one hour have exceeded the rate limit
})

TRANSIENT_ERROR_CODES = frozenset({
    1,     # API Unknown
    2,     # API Service
    4,
    17,
    32,
    341,   # Application limit reached
    613,
})

TRANSIENT_ERROR_SUBCODES = frozenset({
    1487742,   # Too many calls from this ad account
    2446079,   # Too many calls to this ad account
    1504022,   # Request timed out
    1504039,   # Request timed out, reduce the amount of data
})

# -------------------------------------------------------------------
# Human-readable messages
# -------------------------------------------------------------------

FACEBOOK_ERROR_MESSAGES = {
    1: "Temporary Facebook service error. Please try again.",
    2: "Facebook service is temporarily unavailable.",
    4: "Too many requests. Please wait a few minutes and try again.",
    10: "The app does not have permission for this action. Please grant all required permissions.",
    17: "Request limit reached. Please try again later.",
    32: "Page request limit reached. Please try again later.",
    100: "The requested Facebook object does not exist or cannot be accessed.",
    102: "Facebook session expired. Please sign in again.",
    190: "Facebook session expired. Please sign in again.",
    200: "Permission error. Please check app permissions.",
    341: "Application limit reached. Please try again later.",
    463: "Facebook session expired. Please sign in again.",
    467: "Facebook session is no longer valid. Please sign in again.",
    613: "Too many requests. Please wait a few minutes and try again.",
    803: "Some permissions were not granted. Please try logging in again.",
}

# OAuthException (190) subcodes
FACEBOOK_ERROR_SUBCODE_MESSAGES = {
    458: "The app is no longer authorised on your Facebook account. Please sign in again.",
    459: "Your Facebook account needs attention. Log in to facebook.com, then sign in again.",
    460: "Your Facebook password changed. Please sign in again.",
    463: "Facebook session expired. Please sign in again.",
    464: "Your Facebook account is not confirmed. Log in to facebook.com, then sign in again.",
    467: "Facebook session is no longer valid. Please sign in again.",
}

DEFAULT_FACEBOOK_ERROR_MESSAGE = "An error occurred with Facebook. Please try again."

# -------------------------------------------------------------------
# Permissions
# -------------------------------------------------------------------

DEFAULT_REQUIRED_SCOPES = [
    "pages_show_list",
    "pages_read_engagement",
    "leads_retrieval",
    "pages_manage_metadata",
]

ACCESS_LEAD_GEN_TASK = "ACCESS_LEAD_GEN"

LEAD_ACCESS_HELP_URL = "https://www.facebook.com/business/help/1869651226666390"

LEAD_ACCESS_INSTRUCTIONS = (
    'To access leads, you need the "Access Lead Gen" permission on this Facebook Page.\n\n'
    "Steps to fix:\n"
    "1. Go to Facebook Page Settings\n"
    "2. Click Tasks/Roles\n"
    "3. Find your account\n"
    "4. Click Edit\n"
    '5. Enable "Access Lead Gen"\n\n'
    "If you don't see this option, ask a Page Admin to grant you the permission."
)

PAGE_TOKEN_MISSING_INSTRUCTIONS = (
    "Facebook did not issue a Page access token for this Page. "
    "Sign in again with Facebook and make sure this Page is selected, "
    "or ask a Page Admin to give your account a role on it."
)

ACCOUNT_SCOPE_INSTRUCTIONS = (
    "Sign in again with Facebook and approve every requested permission. "
    "Previously declined permissions can be re-enabled under "
    "Facebook Settings > Apps and Websites."
)
