"""
Seed data script for the School Records system.
Creates a sample school with students for one owner, for demonstration.

Usage:
    python -m database.seed <owner_user_id> [owner_email]
"""
import sys
from datetime import date

from database import (
    get_db_context, init_db,
    UserProfile, School, Student, PREDEFINED_CLASSES,
)


def seed_database(owner_user_id: str, owner_email: str = "", session_factory=None) -> dict:
    """Replace the owner's schools and students with sample data."""

    with get_db_context(session_factory) as db:
        # Clear the owner's existing data
        db.query(Student).filter(Student.owner_user_id == owner_user_id).delete()
        db.query(School).filter(School.owner_user_id == owner_user_id).delete()

        if not db.query(UserProfile).filter(UserProfile.id == owner_user_id).first():
            db.add(UserProfile(id=owner_user_id, email=owner_email, name="Demo Owner"))

        # Create Schools
        schools = [
            School(owner_user_id=owner_user_id, name="Green Valley School", class_names=PREDEFINED_CLASSES[3:8]),
            School(owner_user_id=owner_user_id, name="Riverside Academy", class_names=["LKG", "UKG"]),
        ]
        db.add_all(schools)
        db.flush()

        # Create Students
        students = [
            Student(owner_user_id=owner_user_id, school_id=schools[0].id, class_name="1st Grade",
                    name="Asha Rao", father_name="Kiran Rao", roll_number="1",
                    date_of_birth=date(2018, 4, 12), address="12 Lake Road", contact_number="555-0101"),
            Student(owner_user_id=owner_user_id, school_id=schools[0].id, class_name="1st Grade",
                    name="Bala Iyer", father_name="Suresh Iyer", roll_number="2",
                    date_of_birth=date(2018, 9, 3), address="4 Hill Street", contact_number="555-0102"),
            Student(owner_user_id=owner_user_id, school_id=schools[0].id, class_name="3rd Grade",
                    name="Chitra Nair", father_name="Mohan Nair", roll_number="1",
                    date_of_birth=date(2016, 1, 27), address="9 Temple Lane", contact_number="555-0103"),
            Student(owner_user_id=owner_user_id, school_id=schools[1].id, class_name="UKG",
                    name="Dev Menon", father_name="Arun Menon", roll_number="5",
                    date_of_birth=date(2020, 11, 30), address="21 River View", contact_number="555-0104"),
        ]
        db.add_all(students)

    print("Database seeded successfully!")
    print("Created:")
    print(f"  - {len(schools)} schools")
    print(f"  - {len(students)} students")
    return {"schools": len(schools), "students": len(students)}


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m database.seed <owner_user_id> [owner_email]")
        sys.exit(1)
    print("Initializing database...")
    init_db()
    print("Seeding database...")
    seed_database(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else "")
