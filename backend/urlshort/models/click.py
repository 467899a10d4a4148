from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import relationship
from ..database import Base


class Click(Base):
    """Click event, written once per tracked redirect"""
    __tablename__ = "clicks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url_id = Column(Integer, ForeignKey("urls.id", ondelete="CASCADE"), nullable=False)
    clicked_at = Column(DateTime(timezone=True), server_default=func.now())
    user_agent = Column(String(512), nullable=True)
    referer = Column(String(512), nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv4 or IPv6

    # Relationship with url
    url = relationship("Url", back_populates="click_events")

    __table_args__ = (
        Index("idx_clicks_url_id", "url_id"),
        Index("idx_clicks_clicked_at", "clicked_at"),
    )

    def __repr__(self):
        return f"<Click {self.id} for url {self.url_id}>"
