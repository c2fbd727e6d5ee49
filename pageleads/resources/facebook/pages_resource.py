from flask import g, request, jsonify
from flask.views import MethodView
from flask_smorest import Blueprint

from ...constants.service_code import HTTP_STATUS_CODES
from ...extensions import get_leads_service
from ...utils.auth import token_required
from ...utils.logger import Log
from ...utils.rate_limits import pages_rate_limiter

blp_facebook_pages = Blueprint(
    "Facebook Pages", __name__, description="Facebook user profile and managed pages"
)


# -------------------------------------------------------------------
# GET /api/facebook/pages
# Profile (me) and managed pages (me/accounts), fetched side by side.
# Graph failures are mapped to HTTP by the app's GraphError handler.
# -------------------------------------------------------------------

@blp_facebook_pages.route("/facebook/pages", methods=["GET"])
class FacebookPagesResource(MethodView):
    decorators = [pages_rate_limiter()]

    @token_required
    def get(self):
        client_ip = request.remote_addr
        log_tag = f"[pages_resource.py][FacebookPagesResource][get][{client_ip}]"

        overview = get_leads_service().get_overview(g.access_token)

        Log.info(f"{log_tag} total_pages={len(overview['pages'])}")
        return jsonify({
            "success": True,
            "user": overview["user"],
            "pages": overview["pages"],
            "total_pages": len(overview["pages"]),
        }), HTTP_STATUS_CODES["OK"]
