"""Persistence layer: SQLAlchemy models, storage handle, refresh-token store."""
from models.base_model import Base, BaseModel, utcnow
from models.user import User
from models.refresh_token import RefreshToken
