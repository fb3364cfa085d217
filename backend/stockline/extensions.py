# Overview: Shared Flask extension instances (SQLAlchemy engine/session and Alembic migrations).

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()
