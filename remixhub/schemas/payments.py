"""Pydantic schemas for payment endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class WebhookData(BaseModel):
    id: str | int | None = None


class WebhookNotification(BaseModel):
    type: str | None = None
    action: str | None = None
    data: WebhookData | None = None


class WebhookAck(BaseModel):
    ok: bool = True


class PaymentStatusResponse(BaseModel):
    payment_id: str
    status: str
