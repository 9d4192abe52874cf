"""
Seed a demo mortgage application (the same fixture the intake form's "fill demo" uses).
Run: python -m scripts.seed_applications (from the project root, with DB reachable).
"""
import asyncio
import os
import sys

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import AsyncSessionLocal, init_db
from services.applications import create_application
from services.encoder import encode_submission
from services.form_state import apply_form_state


DEMO_SUBMISSION = {
    # Applicant identity & contact
    "app-first": "Olivia",
    "app-last": "Tremblay",
    "app-dob": "1988-04-12",
    "app-status": "Married",
    "app-email": "olivia.tremblay@example.com",
    "app-phone": "416-555-0142",
    "app-street": "27 Maple Crescent",
    "app-city": "Toronto",
    "app-province": "ON",
    "app-postal": "M4E 2V1",
    "app-occupancy": "Rent",
    "app-housing-payment": 2100,
    "app-tenure": "4 years",
    # Applicant employment
    "emp-employer": "Northwind Logistics",
    "emp-position": "Operations Manager",
    "emp-paytype": "Salary",
    "emp-income": 98000,
    "emp-tenure": "6 years",
    # Reference
    "ref-name": "Daniel Roy",
    "ref-relationship": "Colleague",
    "ref-phone": "416-555-0199",
    # Co-applicant (same address as applicant)
    "has-coapp": True,
    "has-coapp-address": True,
    "co-first": "Marc",
    "co-last": "Tremblay",
    "co-dob": "1986-11-03",
    "co-email": "marc.tremblay@example.com",
    "co-emp-employer": "City of Toronto",
    "co-emp-position": "Civil Engineer",
    "co-emp-income": 104000,
    # Assets
    "asset-bank-name-1": "TD Chequing",
    "asset-bank-balance-1": 48000,
    "asset-invest-type-1": "TFSA",
    "asset-invest-amount-1": 25000,
    "asset-vehicle-status-1": "Owned",
    "asset-vehicle-value-1": 18000,
    # Liabilities
    "debt-cc-desc-1": "TD Visa",
    "debt-cc-balance-1": 2400,
    "debt-cc-pay-1": 75,
    "debt-loan-desc-1": "RBC LOC",
    "debt-loan-balance-1": 8000,
    "debt-loan-pay-1": 200,
    # Declarations
    "app-bankruptcy": "no",
    "co-bankruptcy": "no",
    # Consent (the server keeps only the signing essentials)
    "consent-text": "I/We warrant and confirm that the information given is true and correct.",
    "sign-app-name": "Olivia Tremblay",
    "sign-app-date": "2025-09-24",
    "sign-co-name": "Marc Tremblay",
    "sign-co-date": "2025-09-24",
    # Financing
    "fin-purchase-price": 650000,
    "fin-down-payment": 130000,
    "fin-closing-date": "2025-12-15",
    "fin-property-address": "118 Birch Avenue",
    "fin-property-city": "Toronto",
    "fin-property-province": "ON",
    "fin-property-postal-code": "M4V 1E2",
}


async def seed():
    await init_db()
    values, _ = apply_form_state(DEMO_SUBMISSION)
    encoded = encode_submission(values)
    async with AsyncSessionLocal() as session:
        app = await create_application(session, encoded)
        await session.commit()
    print(f"Seeded application: {app.id}")
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
