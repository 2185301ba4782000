from sqlalchemy import Column, Integer, ForeignKey
from models.base import Base, TimestampMixin

class UserStat(Base, TimestampMixin):
    """Lifetime quiz aggregate for one user, updated on every completed quiz."""
    __tablename__ = "user_stats"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True, nullable=False)
    games_played = Column(Integer, default=0, nullable=False)
    total_score = Column(Integer, default=0, nullable=False)
    total_correct = Column(Integer, default=0, nullable=False)
    total_wrong = Column(Integer, default=0, nullable=False)
    best_streak = Column(Integer, default=0, nullable=False)
