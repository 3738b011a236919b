"""
Settings bundle served to the client at start-up and checkout
"""
from datetime import date

from sqlalchemy.orm import Session

from eshop_api.services.orders import get_time_slots
from eshop_api.services.wallet import fetch_user_data
from eshop_api.utils.helpers import get_settings, image_url

# variable -> stored as JSON
SETTING_FIELDS = {
    "logo": False,
    "privacy_policy": False,
    "terms_conditions": False,
    "fcm_server_key": False,
    "contact_us": False,
    "about_us": False,
    "currency": False,
    "time_slot_config": True,
    "user_data": False,
    "system_settings": True,
    "shipping_method": True,
    "shipping_policy": False,
    "return_policy": False,
}


def _time_slot_config(db: Session) -> dict:
    config = get_settings(db, "time_slot_config", True)
    if config:
        config["delivery_starts_from"] = config.get("delivery_starts_from") or "0"
        config["starting_date"] = config.get("starting_date") or date.today().isoformat()
    return config


def get_all_settings(db: Session, type: str = "all", user_id=None) -> dict:
    data = {}
    if type == "payment_method":
        data["payment_method"] = get_settings(db, "payment_method", True)
        data["time_slot_config"] = _time_slot_config(db) or []
        data["time_slots"] = get_time_slots(db, status=1)
        data["is_cod_allowed"] = 1
        return {"error": False, "message": "Settings retrieved successfully", "data": data}

    for field, is_json in SETTING_FIELDS.items():
        if field == "logo":
            logo = get_settings(db, "logo")
            data["logo"] = [image_url(logo) if logo else ""]
        elif field == "user_data":
            user = fetch_user_data(db, user_id) if user_id else None
            data["user_data"] = [user] if user else []
        elif field == "time_slot_config":
            data[field] = _time_slot_config(db) or []
        else:
            value = get_settings(db, field, is_json)
            data[field] = value if value else []
    data["tags"] = []
    data["popup_offer"] = []
    return {"error": False, "message": "Settings retrieved successfully", "data": data}
