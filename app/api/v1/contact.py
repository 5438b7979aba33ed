import structlog
from fastapi import APIRouter, HTTPException, Request, status

from app.core.config import settings
from app.core.rate_limiter import limiter
from app.schemas.contact import ContactRequest
from app.utils.email import queue_email
from app.utils.email_templates import contact_form_template, contact_receipt_template
from app.utils.response import success

router = APIRouter()
logger = structlog.get_logger()


@router.post(
    "/",
    response_model=dict,
    summary="Send contact form",
    description="""
Forwards the message to the store inbox and sends a receipt to the sender.
Fails with 500 only when the message for the store cannot be queued.
""",
)
@limiter.limit("5/minute")
def send_contact(request: Request, payload: ContactRequest):
    if not payload.name or not payload.email or not payload.message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nombre, email y mensaje son requeridos",
        )

    subject = payload.subject or "Nuevo mensaje de contacto"
    queued = queue_email(
        settings.contact_recipient,
        f"[Contacto] {subject}",
        contact_form_template(
            payload.name,
            payload.email,
            payload.phone,
            payload.subject,
            payload.message,
        ),
    )
    if not queued:
        logger.error("contact_message_not_queued", sender=payload.email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al enviar el mensaje",
        )

    queue_email(
        payload.email,
        "Hemos recibido tu mensaje - FYTTSA",
        contact_receipt_template(payload.name),
    )
    logger.info("contact_message_received", sender=payload.email)
    return success(message="Mensaje enviado correctamente")
