from sqlalchemy import Column, Integer, String, DateTime, Index, func, text
from sqlalchemy.orm import relationship
from ..database import Base


class Url(Base):
    """Shortened URL record"""
    __tablename__ = "urls"

    id = Column(Integer, primary_key=True, autoincrement=True)
    short_code = Column(String(20), unique=True, nullable=False)
    original_url = Column(String(2048), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    clicks = Column(Integer, nullable=False, default=0, server_default=text("0"))
    last_clicked_at = Column(DateTime(timezone=True), nullable=True)

    # Click events are removed together with their link
    click_events = relationship(
        "Click",
        back_populates="url",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        Index("idx_short_code", "short_code"),
        Index("idx_original_url", "original_url"),
        Index("idx_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<Url {self.short_code} -> {self.original_url}>"
