import re
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute


async def next_document_number(
    db: AsyncSession,
    column: InstrumentedAttribute,
    tenant_column: InstrumentedAttribute,
    tenant_id: uuid.UUID,
    prefix: str,
) -> str:
    """Return the next ``PREFIX-0001`` style number for a tenant.

    Numbers are zero padded to four digits, so the lexical maximum is also the
    numeric maximum until a tenant passes 9999 documents of one kind.
    """
    result = await db.execute(
        select(func.max(column)).where(tenant_column == tenant_id)
    )
    last = result.scalar()
    next_number = 1
    if last:
        match = re.match(rf"{re.escape(prefix)}-(\d+)$", last)
        if match:
            next_number = int(match.group(1)) + 1
    return f"{prefix}-{next_number:04d}"
