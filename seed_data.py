"""Seed database with demo employees spread across every lifecycle state."""
from sqlalchemy import func, select

from database import SessionLocal, engine
from models import Base, Employee
from simple_state import SessionStore, TransitionExecutor

# (email, name, transitions to run in order)
DEMO_EMPLOYEES = [
    ("ada@example.com", "Ada Lovelace", []),
    ("grace@example.com", "Grace Hopper", ["invite"]),
    ("alan@example.com", "Alan Turing", ["invite", "enroll"]),
    ("edsger@example.com", "Edsger Dijkstra", ["invite", "enroll", "suspend"]),
    ("barbara@example.com", "Barbara Liskov", ["invite", "enroll", "terminate"]),
]


def create_tables():
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)
    print("✅ Database tables created")


def seed_employees(db):
    executor = TransitionExecutor(SessionStore(db))
    for email, name, transitions in DEMO_EMPLOYEES:
        emp = Employee(email=email, name=name)
        db.add(emp)
        db.commit()
        for transition in transitions:
            executor.execute(emp, transition)
        print(f"✅ {name}: {emp.state}")


def main():
    create_tables()
    db = SessionLocal()

    # Skip seeding on redeploy
    try:
        existing_count = db.scalar(select(func.count()).select_from(Employee))
        if existing_count > 0:
            print(f"⚠️ Database already has {existing_count} employees. Skipping seed to preserve data.")
            db.close()
            return
    except Exception as e:
        print(f"⚠️ Could not check existing data: {e}")

    try:
        seed_employees(db)
        total = db.scalar(select(func.count()).select_from(Employee))
        print(f"\n📊 Seed complete! {total} employees")
    except Exception as e:
        print(f"❌ Error seeding database: {e}")
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    main()
