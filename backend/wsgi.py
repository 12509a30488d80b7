# backend/wsgi.py
from tillbook import create_app

app = create_app()
