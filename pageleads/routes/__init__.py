from ..resources import (
    blp_facebook_pages,
    blp_facebook_leads,
    blp_error_reporting,
    blp_metrics,
)


def register_routes(app, api):
    blueprints = [
        blp_facebook_pages,
        blp_facebook_leads,
        blp_error_reporting,
        blp_metrics,
    ]

    for blueprint in blueprints:
        api.register_blueprint(blueprint, url_prefix="/api")

    # Root route
    @app.route('/')
    def index():
        return {"message": f"Welcome to the {app.config.get('APP_NAME', 'PageLeads')} API"}
