# Overview: Flask extension instances shared by the lottery models and services.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Lottery book state lives in SQL; Flask-Migrate drives the Alembic revisions.
db = SQLAlchemy()
migrate = Migrate()
