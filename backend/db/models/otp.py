from sqlalchemy import Column, Integer, String, DateTime, Index
from db.session import Base


class OtpRecordModel(Base):
    __tablename__ = "otp_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    otp = Column(Integer, nullable=False)
    expiration = Column(DateTime(timezone=True), nullable=False)
    # Persisted for schema compatibility; nothing increments it
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        Index("ix_otp_records_email_created", "email", "created_at"),
        Index("ix_otp_records_phone_created", "phone", "created_at"),
    )
