from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base_class import Base


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    label = Column(String(50), default="Casa", nullable=False)
    full_name = Column(String(150), nullable=False)
    phone = Column(String(20), nullable=False)
    street = Column(String(200), nullable=False)
    exterior_number = Column(String(20), nullable=False)
    interior_number = Column(String(20))
    neighborhood = Column(String(150), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postal_code = Column(String(10), nullable=False)
    country = Column(String(60), default="México", nullable=False)
    references_text = Column(Text)

    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="addresses")

    SNAPSHOT_FIELDS = (
        "full_name",
        "phone",
        "street",
        "exterior_number",
        "interior_number",
        "neighborhood",
        "city",
        "state",
        "postal_code",
        "country",
        "references_text",
    )

    def snapshot(self) -> dict:
        """Copy of the address as it is at order time."""
        return {field: getattr(self, field) for field in self.SNAPSHOT_FIELDS}
