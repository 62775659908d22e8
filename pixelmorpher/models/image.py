from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pixelmorpher.models.base import Base


class Image(Base):
    __tablename__ = 'images'
    id = Column(Integer, primary_key=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    public_id = Column(String, nullable=False)  # Cloudinary ID
    transformation_type = Column(String, nullable=False)  # e.g. 'restore', 'fill'
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    config = Column(JSON, nullable=True)
    secure_url = Column(String, nullable=False)
    transformation_url = Column(String, nullable=True)
    aspect_ratio = Column(String, nullable=True)
    prompt = Column(String, nullable=True)
    color = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    author = relationship("User", back_populates="images")
