import enum
import uuid

from sqlalchemy import Boolean, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldsmart.customers.models import Address, Customer
from fieldsmart.database import Base, TenantMixin, TimestampMixin
from fieldsmart.jobs.models import Priority


class ServiceRequestStatus(str, enum.Enum):
    NEW = "NEW"
    IN_REVIEW = "IN_REVIEW"
    CONVERTED = "CONVERTED"
    CLOSED = "CLOSED"


class RequestSource(str, enum.Enum):
    MANUAL = "MANUAL"
    PHONE = "PHONE"
    EMAIL = "EMAIL"
    ONLINE_BOOKING = "ONLINE_BOOKING"


class ServiceRequest(TenantMixin, TimestampMixin, Base):
    __tablename__ = "service_requests"
    __table_args__ = (UniqueConstraint("tenant_id", "request_number"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    request_number: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    address_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ServiceRequestStatus] = mapped_column(
        Enum(ServiceRequestStatus), default=ServiceRequestStatus.NEW, nullable=False
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority), default=Priority.NORMAL, nullable=False
    )
    source: Mapped[RequestSource] = mapped_column(
        Enum(RequestSource), default=RequestSource.MANUAL, nullable=False
    )
    use_same_as_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    job_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True
    )
    created_by: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    customer: Mapped[Customer] = relationship("Customer", lazy="selectin")
    address: Mapped[Address | None] = relationship("Address", lazy="selectin")
