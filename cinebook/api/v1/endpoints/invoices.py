"""
Invoice endpoints for the authenticated customer
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from cinebook.core.database import get_session
from cinebook.core.security import get_current_user
from cinebook.models.user import User
from cinebook.services.invoice_service import format_invoice_detail, invoice_service

router = APIRouter()


@router.get("")
async def get_user_invoices(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Get the current user's invoices, newest first
    """
    invoices = await invoice_service.list_for_user(db, current_user.id)
    return {
        "success": True,
        "message": f"{len(invoices)} invoice(s)",
        "data": [format_invoice_detail(invoice) for invoice in invoices],
    }


@router.get("/{invoice_id}")
async def get_invoice(
    invoice_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    invoice = await invoice_service.get_for_user(db, invoice_id, current_user.id)
    return {"success": True, "message": "Invoice found", "data": format_invoice_detail(invoice)}


@router.get("/{invoice_id}/pdf")
async def download_invoice(
    invoice_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Response:
    pdf = await invoice_service.pdf(db, invoice_id, current_user.id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="invoice-{invoice_id}.pdf"'}
    )


@router.post("/{invoice_id}/send-email")
async def send_invoice_email(
    invoice_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Email the invoice to its customer again
    """
    sent = await invoice_service.send_email(db, invoice_id, current_user.id)
    return {
        "success": True,
        "message": "Invoice sent" if sent else "Invoice email could not be sent",
        "data": {"sent": sent},
    }
