# models/user.py
import enum
from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from .base import Base, CreatedAtMixin


class UserRole(str, enum.Enum):
     ADMIN = "admin"
     SERVICE_MANAGER = "service_manager"
     DISPATCHER = "dispatcher"
     MECHANIC = "mechanic"
     CUSTOMER = "customer"


class User(CreatedAtMixin, Base):
     """
     User model - staff members and customers.
     Any role other than 'customer' counts as staff for access checks.
     """
     __tablename__ = "users"

     id = Column(Integer, primary_key=True, autoincrement=True)
     email = Column(String(255), unique=True, nullable=True, index=True)
     first_name = Column(String(100), nullable=True)
     last_name = Column(String(100), nullable=True)
     role = Column(String(50), default=UserRole.CUSTOMER.value, nullable=False)

     # Relationships
     orders = relationship("Order", back_populates="customer")

     @property
     def full_name(self) -> str:
          return " ".join(part for part in (self.first_name, self.last_name) if part)

     @property
     def is_staff(self) -> bool:
          return self.role != UserRole.CUSTOMER.value

     def __repr__(self):
          return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
