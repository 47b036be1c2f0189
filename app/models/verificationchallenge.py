from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.constants.constants import ChallengeChannel, ChallengePurpose
from app.models.base import Base, TimestampMixin


class VerificationChallenge(Base, TimestampMixin):
    """Outstanding proof-of-control secret; one per user, channel and purpose."""

    __tablename__ = "verification_challenges"
    __table_args__ = (
        UniqueConstraint("user_id", "channel", "purpose", name="uq_challenge_user_channel_purpose"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    channel = Column(Enum(ChallengeChannel, native_enum=False, length=10), nullable=False)
    purpose = Column(Enum(ChallengePurpose, native_enum=False, length=20), nullable=False)
    secret_hash = Column(String(64), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="challenges")

    def __repr__(self):
        return f"<VerificationChallenge {self.channel.value}/{self.purpose.value} user={self.user_id}>"
