# backend/wsgi.py
from fieldops import create_app

app = create_app()
