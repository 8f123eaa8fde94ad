"""Imports every model module so ``Base.metadata`` holds the full schema."""

from fieldsmart.database import Base
from fieldsmart.auth.models import RefreshToken, Role, Tenant, User
from fieldsmart.customers.models import Address, AddressType, Customer
from fieldsmart.estimates.models import Estimate, EstimateLineItem, EstimateOption
from fieldsmart.jobs.models import Job
from fieldsmart.service_requests.models import ServiceRequest

__all__ = [
    "Address",
    "AddressType",
    "Base",
    "Customer",
    "Estimate",
    "EstimateLineItem",
    "EstimateOption",
    "Job",
    "RefreshToken",
    "Role",
    "ServiceRequest",
    "Tenant",
    "User",
]
