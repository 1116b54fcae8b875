from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from turtlechat.database.mysql import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    nickname = Column(String(50), index=True, nullable=False)
    profile_image = Column(String(500), nullable=True, comment="프로필 이미지 URL")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, nickname={self.nickname})>"
