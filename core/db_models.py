from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String

from core.database import Base


class IdentityModel(Base):
    __tablename__ = "identities"

    owner_id = Column(String, primary_key=True)
    display_name = Column(String, nullable=False, default="Unknown")
    active_report_count = Column(Integer, nullable=False, default=0)
    created_at = Column(Integer, nullable=False)  # ms


class DangerPointModel(Base):
    __tablename__ = "danger_points"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(String, unique=True, index=True, nullable=False)
    owner_id = Column(String, ForeignKey("identities.owner_id"), nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    category = Column(String, nullable=False)  # light | few | monitor | dangerous
    observed_at = Column(DateTime, nullable=False)
    alpha = Column(Float, nullable=False, default=0.0)
    created_at = Column(Integer, nullable=False)  # ms, eviction order

    __table_args__ = (
        Index("ix_danger_points_owner_created", "owner_id", "created_at", "id"),
        Index("ix_danger_points_lat_lng", "lat", "lng"),
    )
