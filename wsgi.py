# wsgi.py
from pageleads import create_app

application = create_app()
