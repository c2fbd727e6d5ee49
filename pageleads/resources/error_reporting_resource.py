from flask import request, jsonify
from flask.views import MethodView
from flask_smorest import Blueprint

from ..constants.service_code import HTTP_STATUS_CODES
from ..extensions import get_error_reporter
from ..schemas.facebook_schema import ClientErrorReportSchema
from ..services.error_reporter import sanitize_message
from ..utils.logger import Log

blp_error_reporting = Blueprint(
    "Error Reporting", __name__, description="Collect error reports from browser clients"
)


@blp_error_reporting.route("/error-reporting", methods=["POST"])
class ErrorReportingResource(MethodView):
    @blp_error_reporting.arguments(ClientErrorReportSchema, location="json")
    def post(self, payload):
        request_meta = {
            "request_url": request.url,
            "user_agent": request.headers.get("User-Agent"),
            "referer": request.headers.get("Referer"),
        }

        Log.error(
            f"[error_reporting_resource.py][ErrorReportingResource][post] Client Error: "
            f"{payload.get('name') or 'Error'}: {sanitize_message(payload['message'])}"
        )
        get_error_reporter().report_client_error(payload, request_meta)

        return jsonify({"success": True}), HTTP_STATUS_CODES["OK"]
