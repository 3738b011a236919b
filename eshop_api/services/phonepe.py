"""
PhonePe standard checkout (v2 REST API) client
"""
import hashlib
import hmac
import json
import re
import time
from typing import Optional

import requests
from loguru import logger

from eshop_api.config import PhonePeConfig, settings
from eshop_api.exceptions import PaymentGatewayError

MERCHANT_ORDER_RE = re.compile(r"ORDER_(\d+)_")
INVALID_AMOUNT_MESSAGE = "Invalid payment amount. Amount must be at least Rs. 1"


def make_merchant_order_id(order_id) -> str:
    return f"ORDER_{order_id}_{int(time.time() * 1000)}"


def extract_order_id(merchant_order_id: str) -> Optional[str]:
    """Our order id from a ``ORDER_{id}_{ms}`` merchant order id"""
    match = MERCHANT_ORDER_RE.search(merchant_order_id or "")
    return match.group(1) if match else None


def to_paisa(amount) -> int:
    return int(round(float(amount) * 100))


class PhonePeClient:
    """OAuth client-credentials token plus the pay and order status calls"""

    def __init__(self, config: PhonePeConfig, session: requests.Session = None):
        self.config = config
        self.session = session or requests.Session()
        self._access_token = None
        self._expires_at = 0

    def is_available(self) -> bool:
        return self.config.is_configured

    def _token(self, force: bool = False) -> str:
        if not force and self._access_token and self._expires_at - 60 > time.time():
            return self._access_token
        try:
            response = self.session.post(
                self.config.auth_url,
                data={
                    "client_id": self.config.client_id,
                    "client_version": self.config.client_version,
                    "client_secret": self.config.client_secret,
                    "grant_type": "client_credentials",
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise PaymentGatewayError(f"PhonePe authorization failed: {exc}", code="AUTH_FAILED") from exc
        if response.status_code != 200:
            raise PaymentGatewayError(
                "PhonePe authorization failed", code="UnauthorizedAccess", status_code=response.status_code
            )
        body = response.json()
        self._access_token = body.get("access_token")
        self._expires_at = int(body.get("expires_at") or time.time() + 3600)
        logger.info("PhonePe access token refreshed")
        return self._access_token

    def _request(self, method: str, path: str, **kwargs) -> dict:
        """Call the PG API; a 401 drops the token and retries up to ``max_retries`` times"""
        url = f"{self.config.pg_base_url}{path}"
        attempt = 0
        while True:
            headers = {
                "Content-Type": "application/json",
                "Authorization": f"O-Bearer {self._token(force=attempt > 0)}",
            }
            try:
                response = self.session.request(method, url, headers=headers, timeout=self.config.timeout, **kwargs)
            except requests.exceptions.RequestException as exc:
                raise PaymentGatewayError(f"PhonePe request failed: {exc}", code="NETWORK_ERROR") from exc

            if response.status_code == 401 and attempt < self.config.max_retries:
                attempt += 1
                logger.warning(f"PhonePe returned 401 for {path}, retry {attempt}/{self.config.max_retries}")
                self._access_token = None
                time.sleep(self.config.retry_delay)
                continue
            try:
                body = response.json()
            except ValueError:
                body = {}
            if response.status_code >= 400:
                code = body.get("code") or ("UnauthorizedAccess" if response.status_code == 401 else None)
                message = body.get("message") or f"PhonePe returned HTTP {response.status_code}"
                if code == "INVALID_AMOUNT":
                    message = INVALID_AMOUNT_MESSAGE
                raise PaymentGatewayError(message, code=code, status_code=response.status_code)
            return body

    def initiate_payment(self, order_id, user_id, amount, merchant_order_id: str = None) -> dict:
        merchant_order_id = merchant_order_id or make_merchant_order_id(order_id)
        paisa = to_paisa(amount)
        if paisa < 100:
            raise PaymentGatewayError(INVALID_AMOUNT_MESSAGE, code="INVALID_AMOUNT", status_code=400)
        payload = {
            "merchantOrderId": merchant_order_id,
            "amount": paisa,
            "metaInfo": {"udf1": str(order_id), "udf2": str(user_id)},
            "paymentFlow": {
                "type": "PG_CHECKOUT",
                "merchantUrls": {"redirectUrl": self.config.redirect_url},
            },
        }
        body = self._request("POST", "/checkout/v2/pay", json=payload)
        logger.info(f"PhonePe payment initiated for {merchant_order_id}: {body.get('state')}")
        return {
            "order_id": body.get("orderId"),
            "merchant_order_id": merchant_order_id,
            "amount": amount,
            "redirect_url": body.get("redirectUrl"),
            "state": body.get("state"),
            "expire_at": body.get("expireAt"),
        }

    def check_status(self, merchant_order_id: str) -> dict:
        body = self._request("GET", f"/checkout/v2/order/{merchant_order_id}/status", params={"details": "true"})
        return {
            "order_id": body.get("orderId"),
            "merchant_order_id": merchant_order_id,
            "state": body.get("state"),
            "amount": (body.get("amount") or 0) / 100,
            "expire_at": body.get("expireAt"),
            "payment_details": body.get("paymentDetails") or [],
        }

    def validate_callback(self, authorization: str, body) -> dict:
        """Check the callback ``Authorization`` header (SHA256 of ``user:pass``) and flatten the payload"""
        credentials = f"{self.config.callback_username}:{self.config.callback_password}"
        expected = hashlib.sha256(credentials.encode("utf-8")).hexdigest()
        if not authorization or not hmac.compare_digest(authorization.strip().lower(), expected):
            raise PaymentGatewayError("Invalid callback authorization", code="UnauthorizedAccess", status_code=401)
        if isinstance(body, (str, bytes)):
            body = json.loads(body)
        payload = body.get("payload") or {}
        details = payload.get("paymentDetails") or [{}]
        return {
            "type": body.get("event") or body.get("type"),
            "order_id": payload.get("orderId"),
            "merchant_order_id": payload.get("merchantOrderId") or payload.get("originalMerchantOrderId"),
            "state": payload.get("state"),
            "amount": (payload.get("amount") or 0) / 100,
            "transaction_id": details[0].get("transactionId"),
        }


phonepe_client = PhonePeClient(settings.phonepe)


def get_phonepe() -> PhonePeClient:
    """FastAPI dependency for the shared client"""
    return phonepe_client
