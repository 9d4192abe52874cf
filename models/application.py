from sqlalchemy import JSON, Column, DateTime, String, func

from database import Base


class Application(Base):
    __tablename__ = "applications"

    id = Column(String(64), primary_key=True, index=True)
    status = Column(String(32), nullable=False, default="submitted", index=True)
    # Bucketed form payloads; keys keep their original "<prefix>-<field>" names
    applicant = Column(JSON, nullable=False)
    co_applicant = Column(JSON(none_as_null=True), nullable=True)
    reference = Column(JSON(none_as_null=True), nullable=True)
    declarations = Column(JSON(none_as_null=True), nullable=True)
    # Compacted: applicant_name, applicant_date, coapplicant_name, coapplicant_date, signature
    consent = Column(JSON(none_as_null=True), nullable=True)
    assets = Column(JSON(none_as_null=True), nullable=True)
    liabilities = Column(JSON(none_as_null=True), nullable=True)
    totals = Column(JSON(none_as_null=True), nullable=True)
    # Compacted: purchase_price, down_payment, finance_amount, closing_date, property_*
    financing_details = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
