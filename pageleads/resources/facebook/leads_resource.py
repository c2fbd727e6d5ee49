from flask import g, request, jsonify
from flask.views import MethodView
from flask_smorest import Blueprint

from ...constants.service_code import HTTP_STATUS_CODES
from ...extensions import get_leads_service
from ...schemas.facebook_schema import LeadsBulkRequestSchema
from ...utils.auth import token_required
from ...utils.logger import Log
from ...utils.rate_limits import leads_rate_limiter

blp_facebook_leads = Blueprint(
    "Facebook Leads", __name__, description="Lead forms and leads for managed pages"
)


# -------------------------------------------------------------------
# GET /api/facebook/leads/<page_id>
# Account scopes -> page ACCESS_LEAD_GEN task -> forms -> leads per form.
# One failing form is reported inside its entry; the others still return.
# -------------------------------------------------------------------

@blp_facebook_leads.route("/facebook/leads/<string:page_id>", methods=["GET"])
class FacebookPageLeadsResource(MethodView):
    decorators = [leads_rate_limiter()]

    @token_required
    def get(self, page_id):
        log_tag = f"[leads_resource.py][FacebookPageLeadsResource][get][{request.remote_addr}][{page_id}]"
        Log.info(f"{log_tag} Starting leads fetch")

        result = get_leads_service().get_page_leads(g.access_token, page_id)

        return jsonify({"success": True, **result}), HTTP_STATUS_CODES["OK"]


@blp_facebook_leads.route("/facebook/leads/<string:page_id>/forms", methods=["GET"])
class FacebookPageFormsResource(MethodView):
    decorators = [leads_rate_limiter()]

    @token_required
    def get(self, page_id):
        result = get_leads_service().get_page_forms(g.access_token, page_id)
        return jsonify({"success": True, **result}), HTTP_STATUS_CODES["OK"]


@blp_facebook_leads.route("/facebook/leads/<string:page_id>/forms/<string:form_id>/leads", methods=["GET"])
class FacebookFormLeadsResource(MethodView):
    decorators = [leads_rate_limiter()]

    @token_required
    def get(self, page_id, form_id):
        result = get_leads_service().get_form_leads_for_page(g.access_token, page_id, form_id)
        return jsonify({"success": True, **result}), HTTP_STATUS_CODES["OK"]


# -------------------------------------------------------------------
# POST /api/facebook/leads
# body: { "page_ids": [...], "page_tokens": [...] }   (same length)
# -------------------------------------------------------------------

@blp_facebook_leads.route("/facebook/leads", methods=["POST"])
class FacebookBulkLeadsResource(MethodView):
    decorators = [leads_rate_limiter()]

    @token_required
    @blp_facebook_leads.arguments(LeadsBulkRequestSchema, location="json")
    def post(self, body):
        log_tag = f"[leads_resource.py][FacebookBulkLeadsResource][post][{request.remote_addr}]"

        results = get_leads_service().fetch_leads_for_pages(body["page_ids"], body["page_tokens"])

        failed = [r["page_id"] for r in results if r.get("error")]
        if failed:
            Log.info(f"{log_tag} pages with errors: {failed}")

        return jsonify({"success": True, "data": results}), HTTP_STATUS_CODES["OK"]
