"""
refundPayment: refund a Stripe payment intent.

Moves money, so it is NOT idempotent. The invoker only marks a failure as
safe to retry when the caller supplied an idempotency key; the key is sent
as Stripe's Idempotency-Key header so a repeated request returns the first
refund instead of creating a second one.
"""

import json

import httpx
from pydantic import BaseModel, Field

from agentflow.core.config import Settings, get_settings
from agentflow.tools.base import Tool


class RefundParams(BaseModel):
    paymentIntentId: str = Field(pattern=r"^pi_[A-Za-z0-9]+$")


def make_refund_tool(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Tool:
    settings = settings or get_settings()

    async def refund_payment(params: RefundParams, idempotency_key: str | None = None) -> str:
        headers = {}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        async with httpx.AsyncClient(
            base_url=settings.stripe_base_url,
            transport=transport,
            timeout=settings.tool_timeout_seconds,
            auth=(settings.stripe_api_key, ""),
        ) as client:
            resp = await client.post(
                "/v1/refunds",
                data={"payment_intent": params.paymentIntentId},
                headers=headers,
            )
            resp.raise_for_status()
            refund = resp.json()

        return json.dumps(refund, indent=2)

    return Tool(
        name="refundPayment",
        description="Refund a Stripe payment intent",
        parameters=RefundParams,
        fn=refund_payment,
        idempotent=False,
    )

