# backend/wsgi.py
from femenine import create_app

app = create_app()
