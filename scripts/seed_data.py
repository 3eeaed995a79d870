# JUAKALI/backend/scripts/seed_data.py : demo data for local development

#!/usr/bin/env python
"""Generates realistic demo data for every role"""

import random
import sys
import os
from datetime import date, timedelta
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from juakali.database import SessionLocal, create_tables, drop_tables
from juakali.models import models
from juakali.auth import hash_password
from juakali.services.loan_service import LoanService

DEMO_PASSWORD = "demo1234"

SUPPLIERS = [
    ("Mombasa Wholesalers", "Groceries", "Mombasa", 4.6),
    ("Nairobi Hardware Depot", "Hardware", "Nairobi", 4.2),
    ("Kisumu Textiles", "Clothing", "Kisumu", 3.9),
    ("Eldoret Agro Supplies", "Agriculture", "Eldoret", 4.4),
]


def _user(db, email, role, first_name, last_name, **extra):
    user = models.User(
        email=email,
        password_hash=hash_password(DEMO_PASSWORD),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_verified=True,
        security_level=3 if role == "admin" else 1,
        **extra
    )
    user.preferences = models.UserPreferences()
    if role != "admin":
        user.credit_profile = models.CreditProfile(
            credit_limit=random.choice([20000, 50000, 100000]),
            total_borrowed=random.randint(0, 80000),
        )
        user.credit_profile.total_repaid = random.randint(0, int(user.credit_profile.total_borrowed))
    db.add(user)
    return user


def generate_test_data(reset=False):
    """Creates one user per role, suppliers, cash flow, transactions, inventory and a stock loan.

    The demo emails are unique, so a second run needs ``reset`` to start from empty tables.
    """
    if reset:
        drop_tables()
    create_tables()
    db = SessionLocal()

    admin = _user(db, "admin@juakali.co.ke", "admin", "Amina", "Otieno")
    lender = _user(db, "lender@juakali.co.ke", "lender", "Brian", "Kamau", company_name="Jua Capital")
    supplier = _user(db, "supplier@juakali.co.ke", "supplier", "Grace", "Wanjiru", company_name="Wanjiru Distributors")
    retailer = _user(db, "retailer@juakali.co.ke", "retailer", "Peter", "Mwangi",
                     company_name="Mwangi Duka", phone_number="+254712345678")
    db.commit()

    shop = models.Retailer(user_id=retailer.id, business_name="Mwangi Duka", location="Githurai")
    db.add(shop)
    db.flush()

    for name, category, location, rating in SUPPLIERS:
        db.add(models.Supplier(
            name=name,
            category=category,
            location=location,
            rating=rating,
            total_orders=random.randint(20, 400),
            delivery_success_rate=round(random.uniform(85, 99), 1),
            is_preferred=rating >= 4.4,
        ))

    # 90 days of lender cash flow
    today = date.today()
    for days_ago in range(90):
        day = today - timedelta(days=days_ago)
        for _ in range(random.randint(0, 3)):
            db.add(models.CashFlowTransaction(
                lender_id=lender.id,
                transaction_type=random.choice(["inflow", "outflow", "lending", "repayment"]),
                amount=random.randint(1000, 60000),
                description="Demo entry",
                transaction_date=day,
            ))

    for _ in range(25):
        db.add(models.Transaction(
            user_id=retailer.id,
            retailer_id=shop.id,
            amount=random.randint(500, 25000),
            transaction_type="payment",
            status=random.choice(["completed", "completed", "pending", "failed"]),
            description="Stock purchase",
        ))

    for name, price in [("Maize flour 2kg", 180), ("Cooking oil 1L", 320), ("Sugar 1kg", 160)]:
        db.add(models.Product(
            supplier_id=supplier.id,
            name=name,
            category="Groceries",
            price=price,
            stock_quantity=random.randint(5, 200),
        ))

    db.add(models.Notification(
        lender_id=lender.id,
        type="payment",
        priority="medium",
        title="Repayment received",
        message="Mwangi Duka paid today's instalment",
        retailer_name="Mwangi Duka",
        amount=1500,
    ))
    db.add(models.KYCDocument(user_id=retailer.id, document_type="national_id", document_number="12345678"))
    db.commit()

    # One running stock loan with a first instalment paid
    loans = LoanService(db)
    loan = loans.create(retailer, 15000, 0.01, 30, lender_id=lender.id, goods_category="Groceries",
                        goods_description="Maize flour and cooking oil")
    loans.change_status(loan, "approved", lender)
    loans.change_status(loan, "active", lender)
    loans.confirm_delivery(loan, retailer, confirmation_type="pin", confirmation_code="4821")
    loans.record_repayment(loan, loan.daily_payment_amount, "mpesa", retailer, transaction_reference="QKJ4ABC123")

    db.commit()
    print("✅ Demo data generated!")
    print(f"👤 Demo users: {admin.email}, {lender.email}, {supplier.email}, {retailer.email} / {DEMO_PASSWORD}")
    db.close()


if __name__ == "__main__":
    generate_test_data(reset="--reset" in sys.argv)
