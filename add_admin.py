# add_admin.py
import logging
from datetime import datetime, timezone

from core.auth.jwt import create_access_token
from infrastructure.database.client import get_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _user(name, phone, roles, street):
    now = datetime.now(timezone.utc)
    return {
        "name": name,
        "phone": phone,
        "roles": roles,
        "status": "active",
        "address": {"street": street},
        "created_at": now,
        "updated_at": now,
    }


def add_admin():
    """Seed an admin, a buyer, a seller, a service provider and one listing each."""
    try:
        db = get_db()

        admin_id = db.users.insert_one(_user("Admin", "+201000000000", ["admin"], "Tahrir Square")).inserted_id
        logger.info(f"Admin added with ID: {admin_id}")

        buyer_id = db.users.insert_one(_user("Mona Buyer", "+201000000001", ["user"], "Nile Corniche 12")).inserted_id
        seller_id = db.users.insert_one(_user("Hassan Farms", "+201000000002", ["user"], "Fayoum Road 3")).inserted_id
        provider_id = db.users.insert_one(_user("Karim Repairs", "+201000000003", ["user"], "Giza St 7")).inserted_id
        logger.info(f"Sample users added: buyer={buyer_id}, seller={seller_id}, provider={provider_id}")

        now = datetime.now(timezone.utc)
        product_id = db.products.insert_one({
            "seller_id": str(seller_id),
            "title": "Fresh tomatoes",
            "description": "Picked this morning",
            "price": 25.0,
            "currency": "EGP",
            "unit": "kg",
            "images": [],
            "delivery_fee": 10.0,
            "is_available": True,
            "created_at": now,
            "updated_at": now,
        }).inserted_id
        service_id = db.services.insert_one({
            "provider_id": str(provider_id),
            "title": "Irrigation pump repair",
            "description": "On-site repair of small pumps",
            "price": 300.0,
            "currency": "EGP",
            "images": [],
            "is_available": True,
            "created_at": now,
            "updated_at": now,
        }).inserted_id
        logger.info(f"Sample listings added: product={product_id}, service={service_id}")

        for label, user_id, roles in (("admin", admin_id, ["admin"]), ("buyer", buyer_id, ["user"]),
                                      ("seller", seller_id, ["user"]), ("provider", provider_id, ["user"])):
            logger.info(f"Access token for {label}: {create_access_token(str(user_id), roles)}")

        logger.info("Admin and sample data added successfully!")

    except Exception as e:
        logger.error(f"Failed to add admin or sample data: {str(e)}")
        raise


if __name__ == "__main__":
    add_admin()
