from .pages_resource import blp_facebook_pages
from .leads_resource import blp_facebook_leads

__all__ = ["blp_facebook_pages", "blp_facebook_leads"]
