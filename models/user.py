from models.base_model import Base, BaseModel
from sqlalchemy import Column, String


class User(BaseModel, Base):
    """A principal: the account tokens are issued for. Email is its handle."""

    __tablename__ = "users"
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
