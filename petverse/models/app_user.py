"""User model - marketplace accounts mirrored from the auth provider."""
import enum
from sqlalchemy import Column, String, Boolean, Integer, DateTime, CheckConstraint
from sqlalchemy.sql import func
from petverse.database import Base, BigIntPK


class UserRole(str, enum.Enum):
    """Roles issued by the auth provider."""
    PET_OWNER = 'pet_owner'
    SERVICE_PROVIDER = 'service_provider'
    ADMIN = 'admin'


class User(Base):
    """
    Marketplace user.

    `external_uid` is the identity issued by the auth provider; appointments
    reference their owner through it rather than through `id`.
    `loyalty_points` is only moved by the loyalty service.
    """

    __tablename__ = 'app_user'
    __table_args__ = (
        CheckConstraint('loyalty_points >= 0', name='ck_app_user_points_non_negative'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    external_uid = Column(String(128), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(200), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.PET_OWNER.value)
    loyalty_points = Column(Integer, nullable=False, default=0, server_default='0')
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'fullName': self.full_name,
            'role': self.role,
            'loyaltyPoints': self.loyalty_points,
        }

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
