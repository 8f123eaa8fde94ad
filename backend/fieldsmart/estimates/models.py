import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldsmart.customers.models import Address, Customer
from fieldsmart.database import Base, TenantMixin, TimestampMixin
from fieldsmart.estimates.pricing import (
    DEFAULT_TAX_RATE,
    DiscountType,
    EstimateTotals,
    OptionTotals,
    calculate_estimate_totals,
    calculate_option_totals,
    line_total,
    round_money,
)


class EstimateStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"


class LineItemType(str, enum.Enum):
    SERVICE = "SERVICE"
    MATERIAL = "MATERIAL"
    LABOR = "LABOR"
    EQUIPMENT = "EQUIPMENT"
    OTHER = "OTHER"


# Status -> timestamp column stamped the first time the estimate enters it
STATUS_TIMESTAMPS = {
    EstimateStatus.SENT: "sent_at",
    EstimateStatus.VIEWED: "viewed_at",
    EstimateStatus.APPROVED: "approved_at",
    EstimateStatus.DECLINED: "declined_at",
    EstimateStatus.EXPIRED: "expired_at",
}


class Estimate(TenantMixin, TimestampMixin, Base):
    __tablename__ = "estimates"
    __table_args__ = (UniqueConstraint("tenant_id", "estimate_number"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    estimate_number: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    address_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[EstimateStatus] = mapped_column(
        Enum(EstimateStatus), default=EstimateStatus.DRAFT, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms_and_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)
    valid_until: Mapped[date | None] = mapped_column(Date, nullable=True)
    customer_can_approve: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    use_same_as_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 3), default=DEFAULT_TAX_RATE, nullable=False
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    declined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    # Relationships
    customer: Mapped[Customer] = relationship("Customer", lazy="selectin")
    address: Mapped[Address | None] = relationship("Address", lazy="selectin")
    options: Mapped[list["EstimateOption"]] = relationship(
        "EstimateOption",
        back_populates="estimate",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="EstimateOption.sort_order",
    )

    def option_totals(self) -> list[OptionTotals]:
        return [option.totals(self.tax_rate) for option in self.options]

    def totals(self) -> EstimateTotals:
        return calculate_estimate_totals(self.option_totals())


class EstimateOption(Base):
    __tablename__ = "estimate_options"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    estimate_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("estimates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_recommended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    discount_type: Mapped[DiscountType] = mapped_column(
        Enum(DiscountType), default=DiscountType.NONE, nullable=False
    )
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), nullable=False
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    estimate: Mapped[Estimate] = relationship("Estimate", back_populates="options")
    line_items: Mapped[list["EstimateLineItem"]] = relationship(
        "EstimateLineItem",
        back_populates="option",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="EstimateLineItem.sort_order",
    )

    def totals(self, tax_rate: Decimal) -> OptionTotals:
        return calculate_option_totals(
            self.line_items, self.discount_type, self.discount_value, tax_rate
        )


class EstimateLineItem(Base):
    __tablename__ = "estimate_line_items"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    option_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("estimate_options.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[LineItemType] = mapped_column(
        Enum(LineItemType), default=LineItemType.SERVICE, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("1"), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_optional: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_selected: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    option: Mapped[EstimateOption] = relationship("EstimateOption", back_populates="line_items")

    @property
    def total(self) -> Decimal:
        return round_money(line_total(self))
