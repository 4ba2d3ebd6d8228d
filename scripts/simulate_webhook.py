"""
Simulate a Stripe webhook delivery against a running PayRelay instance.

Usage:
    python scripts/simulate_webhook.py
    python scripts/simulate_webhook.py --type payment_intent.payment_failed
    python scripts/simulate_webhook.py --secret whsec_test --count 5
"""
import argparse
import asyncio
import json
import logging
import uuid

import httpx

from payrelay.utils.webhook_signatures import SIGNATURE_HEADER, sign_payload

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:4242"


def build_event(event_type: str) -> dict:
    """A minimal Stripe-shaped event for event_type."""
    obj = {"id": f"pi_{uuid.uuid4().hex[:14]}", "object": "payment_intent", "amount": 2000}
    if event_type == "payment_intent.payment_failed":
        obj["last_payment_error"] = {"message": "Your card was declined."}
    elif event_type == "invoice.payment_succeeded":
        obj = {"id": f"in_{uuid.uuid4().hex[:14]}", "object": "invoice", "customer": "cus_test"}
    return {
        "id": f"evt_{uuid.uuid4().hex[:14]}",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


async def send_event(client: httpx.AsyncClient, event: dict, secret: str) -> httpx.Response:
    body = json.dumps(event).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if secret:
        headers[SIGNATURE_HEADER] = sign_payload(secret, body)
    resp = await client.post(f"{BASE_URL}/webhook", content=body, headers=headers)
    logger.info("%s %s -> %s %s", event["type"], event["id"], resp.status_code, resp.text)
    return resp


async def main():
    global BASE_URL
    parser = argparse.ArgumentParser(description="Simulate Stripe webhook deliveries")
    parser.add_argument("--type", default="payment_intent.succeeded")
    parser.add_argument("--secret", default="", help="Sign with this webhook secret (omit for unsigned)")
    parser.add_argument("--count", type=int, default=1)
    parser.add_argument("--base-url", default=BASE_URL)
    args = parser.parse_args()
    BASE_URL = args.base_url.rstrip("/")

    async with httpx.AsyncClient(timeout=30) as client:
        for _ in range(args.count):
            await send_event(client, build_event(args.type), args.secret)
        resp = await client.get(f"{BASE_URL}/webhook")
        logger.info("Buffered events: %s", resp.json().get("total"))


if __name__ == "__main__":
    asyncio.run(main())
