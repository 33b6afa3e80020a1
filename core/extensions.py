from core.imports import Bcrypt, Swagger, JWTManager, SQLAlchemy, CORS, Migrate, Mail
from services.payos_client import PayOSClient

jwt = JWTManager()
db = SQLAlchemy()
migrate = Migrate()
swagger = Swagger()
cors = CORS()
mail = Mail()
bcrypt = Bcrypt()
payos = PayOSClient()
