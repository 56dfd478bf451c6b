import logging

from sqlalchemy.orm import Session

from services.inventory_service.models import Seller

logger = logging.getLogger(__name__)

# Sample sellers for local runs: (id, name, email)
SAMPLE_SELLERS = [
    ("SELL-ACME", "Acme Supplies", "orders@acme.example"),
    ("SELL-NORTHWIND", "Northwind Traders", "sales@northwind.example"),
    ("SELL-GLOBEX", "Globex Wholesale", "wholesale@globex.example"),
    ("SELL-INITECH", "Initech Components", "parts@initech.example"),
]


def seed_sellers(db: Session) -> int:
    """Seed database with sample sellers. Returns the number inserted."""
    logger.info("Seeding sellers...")
    inserted = 0

    for seller_id, name, email in SAMPLE_SELLERS:
        if db.get(Seller, seller_id) is not None:
            logger.info(f"Seller {seller_id} already exists, skipping")
            continue
        db.add(Seller(id=seller_id, name=name, email=email))
        inserted += 1

    db.commit()
    logger.info(f"Seeded {inserted} sellers")
    return inserted
