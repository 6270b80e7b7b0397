#!/usr/bin/env python3
"""
IPP Performance Tracker — demo seed.

Creates one category, two departments, an employee, a reviewer and an
admin, then walks one IPP through the whole workflow (activities, submit,
verify, approve) and records a year of achievements so the executive
summary has data.

Usage:
    python scripts/seed_demo_data.py              # add to the current DB
    python scripts/seed_demo_data.py --reset      # drop and recreate first
"""

import argparse
import sys

sys.path.insert(0, ".")

from pms import create_app
from pms.core.actor import ActorContext
from pms.models import db
from pms.models.reference import Category, Department, User
from pms.services import achievement_ledger, ipp_service, ipp_workflow
from pms.services.executive_summary import build_executive_summary
from pms.services.jwt_service import generate_access_token

DEMO_IPP_ID = "IPP-DEMO-2025-001"

ACTIVITIES = [
    {"code": "R-01", "category": "ROUTINE", "name": "Monthly closing", "kpi": "Closing on D+3",
     "weight": 0.30, "target": "12 closings", "deliverable": "Closing report"},
    {"code": "R-02", "category": "ROUTINE", "name": "Vendor reconciliation", "kpi": "Open items < 5",
     "weight": 0.20, "target": "Monthly reconciliation", "deliverable": "Reconciliation sheet"},
    {"code": "N-01", "category": "NON_ROUTINE", "name": "Audit follow-up", "kpi": "Findings closed",
     "weight": 0.20, "target": "All findings", "deliverable": "Audit memo"},
    {"code": "P-01", "category": "PROJECT", "name": "ERP migration", "kpi": "Go-live on time",
     "weight": 0.30, "target": "Go-live Q3", "deliverable": "Cutover sign-off"},
]


def seed_master_data():
    category = Category(name="Staff", routine_limit=0.6, non_routine_limit=0.3, project_limit=0.4)
    finance = Department(name="Finance")
    operations = Department(name="Operations")
    db.session.add_all([category, finance, operations])
    db.session.flush()

    users = [
        User(npk="10001", name="Employee Demo", role="USER", department_id=finance.id,
             section="Accounting", position="Staff", grade=3),
        User(npk="20001", name="Reviewer Demo", role="OPERATION", department_id=operations.id),
        User(npk="90001", name="Admin Demo", role="ADMIN", department_id=operations.id),
    ]
    db.session.add_all(users)
    db.session.commit()
    print(f"   ✅ Category '{category.name}', 2 departments, {len(users)} users")
    return category, users


def seed_ipp(category, owner, reviewer):
    ipp = ipp_service.create_ipp(
        owner,
        {"id": DEMO_IPP_ID, "year": 2025, "category_id": category.id, "activities": ACTIVITIES},
    )
    ipp_workflow.submit_ipp(owner, ipp.id)
    ipp_workflow.set_verify(reviewer, ipp.id, "VERIFIED")
    ipp_workflow.set_approval(reviewer, ipp.id, "APPROVED")
    print(f"   ✅ {ipp.id}: {len(ACTIVITIES)} activities, submitted, verified, approved")
    return ipp


def seed_achievements(ipp, owner, reviewer):
    count = 0
    for activity in ipp.activities:
        for month in range(1, 13):
            value = 80 + (month * 7 + activity.id) % 25
            status = "COUNT" if month % 4 else "NOT_COUNT"
            achievement = achievement_ledger.upsert(owner, ipp.id, activity.id, month, value, status)
            if month <= 6:
                achievement_ledger.set_verify(reviewer, achievement.id, "VERIFIED")
            count += 1
        achievement_ledger.attach_evidence(
            owner, achievement.id, f"https://files.example.com/{ipp.id}/{activity.code}/december.pdf",
            file_size=245_760, mime_type="application/pdf",
        )
    for row in ipp.monthly_approvals[:6]:
        ipp_workflow.set_monthly_approval(reviewer, row.id, "APPROVED")
    print(f"   ✅ {count} achievements, {len(ipp.activities)} evidences, 6 months approved")


def main():
    parser = argparse.ArgumentParser(description="Seed IPP demo data")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if args.reset:
            print("\n⚠️  Resetting DB (drop_all + create_all)...")
            db.drop_all()
            db.create_all()

        print("=" * 60)
        print("📋 Loading IPP demo data...")
        print("=" * 60)

        category, users = seed_master_data()
        owner = ActorContext(npk=users[0].npk, role=users[0].role)
        reviewer = ActorContext(npk=users[1].npk, role=users[1].role)

        ipp = seed_ipp(category, owner, reviewer)
        seed_achievements(ipp, owner, reviewer)

        summary = build_executive_summary(reviewer, ipp.id)
        print(f"   📊 Total average: {summary.total_average:.2f}%")
        print()
        for user in users:
            print(f"   🔑 {user.npk} ({user.role}): {generate_access_token(user.npk, user.role)}")
        print()


if __name__ == "__main__":
    main()
