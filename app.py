"""Provides application for development purposes."""

from gctracker.factory import create_web_app
from gctracker.services import datastore

app = create_web_app()
with app.app_context():
    datastore.create_all()

if __name__ == '__main__':
    app.run(port=int(app.config['PORT']))
