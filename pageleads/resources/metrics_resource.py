from flask import current_app, jsonify
from flask.views import MethodView
from flask_smorest import Blueprint

from ..constants.service_code import HTTP_STATUS_CODES
from ..extensions import get_metrics_store
from ..schemas.facebook_schema import MetricsPayloadSchema, MetricsQuerySchema

blp_metrics = Blueprint("Metrics", __name__, description="Client performance metrics")


@blp_metrics.route("/metrics", methods=["POST", "GET"])
class MetricsResource(MethodView):
    @blp_metrics.arguments(MetricsPayloadSchema, location="json")
    def post(self, payload):
        get_metrics_store().add(MetricsPayloadSchema().dump(payload))
        return jsonify({"success": True}), HTTP_STATUS_CODES["OK"]

    @blp_metrics.arguments(MetricsQuerySchema, location="query")
    def get(self, args):
        # retrieval is a development aid only
        if current_app.config.get("APP_ENV") != "development":
            return jsonify({
                "success": False,
                "message": "Metrics retrieval not available in production",
            }), HTTP_STATUS_CODES["FORBIDDEN"]

        result = get_metrics_store().query(args["component"], args["limit"])
        return jsonify({"success": True, **result}), HTTP_STATUS_CODES["OK"]
