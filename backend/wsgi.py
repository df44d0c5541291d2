# backend/wsgi.py
from storefront import create_app

app = create_app()
