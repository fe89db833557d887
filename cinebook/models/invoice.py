"""
Invoice model
"""

from sqlalchemy import Column, String, Numeric, Enum, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import enum

from cinebook.models.base import BaseModel


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    DIGITAL_WALLET = "digital_wallet"


class Invoice(BaseModel):
    """
    Invoice issued alongside a booking; one invoice may cover several bookings
    """
    __tablename__ = "invoices"

    invoice_number = Column(String(40), unique=True, nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    issue_date = Column(DateTime(timezone=True), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(InvoiceStatus),
        default=InvoiceStatus.DRAFT,
        nullable=False,
        index=True
    )
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    payment_date = Column(DateTime(timezone=True))
    customer_name = Column(String(255))
    customer_email = Column(String(255))

    # Relationships
    bookings = relationship("Booking", back_populates="invoice")

    def __repr__(self):
        return f"<Invoice(id={self.id}, number={self.invoice_number}, total={self.total_amount}, status={self.status})>"
