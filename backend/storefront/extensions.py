# Overview: Flask extension instances for the remote catalog database and its migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Only bound to an app when the remote catalog is configured.
db = SQLAlchemy()
migrate = Migrate()
