# backend/wsgi.py
from shoprelay import create_app

app = create_app()
