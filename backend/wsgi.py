# backend/wsgi.py
from ecodues import create_app

app = create_app()
