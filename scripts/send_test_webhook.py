"""
Test script to verify the LINE webhook is working correctly

Sends a signed text message event to a running server:
    python scripts/send_test_webhook.py [text]
"""
import asyncio
import base64
import hashlib
import hmac
import json
import os
import sys
import time

import httpx
from dotenv import load_dotenv

load_dotenv()


def build_payload(text: str, user_id: str = "U_test_user") -> dict:
    """Same shape as what LINE sends for a 1:1 text message"""
    return {
        "destination": "U_bot",
        "events": [
            {
                "type": "message",
                "mode": "active",
                "timestamp": int(time.time() * 1000),
                "source": {"type": "user", "userId": user_id},
                "webhookEventId": "01TESTEVENT",
                "deliveryContext": {"isRedelivery": False},
                "replyToken": "test-reply-token",
                "message": {"id": "100001", "type": "text", "text": text},
            }
        ],
    }


async def test_webhook(text: str):
    """Simulate what LINE sends to our webhook"""

    url = os.getenv("WEBHOOK_URL", "http://localhost:8000/api/v1/webhook")
    body = json.dumps(build_payload(text)).encode("utf-8")

    headers = {"Content-Type": "application/json"}
    secret = os.getenv("LINE_CHANNEL_SECRET")
    if secret:
        digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
        headers["X-Line-Signature"] = base64.b64encode(digest).decode("utf-8")

    print(f"🧪 Testing webhook: {url}")
    print(f"📤 Sending text: {text}\n")

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, content=body, headers=headers, timeout=10.0)

            print(f"✅ Status: {response.status_code}")
            print(f"📥 Response: {response.text[:200]}")

            if response.status_code == 200:
                print("\n✅ Webhook is working!")
            else:
                print(f"\n❌ Webhook returned {response.status_code}")

    except httpx.HTTPError as e:
        print(f"❌ Error: {e}")

if __name__ == "__main__":
    asyncio.run(test_webhook(sys.argv[1] if len(sys.argv) > 1 else "help"))
