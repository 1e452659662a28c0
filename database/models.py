"""
Database models for the School Records system.

Schools and students are partitioned by owner_user_id; every query against
them is scoped to one owner. User profiles form a single global collection
keyed by the identity id.
"""
import uuid

from sqlalchemy import Column, String, Date, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


# Predefined class labels offered when creating a school
PREDEFINED_CLASSES = [
    "Nursery", "LKG", "UKG",
    "1st Grade", "2nd Grade", "3rd Grade", "4th Grade", "5th Grade",
    "6th Grade", "7th Grade", "8th Grade", "9th Grade", "10th Grade",
    "11th Grade", "12th Grade",
]

DEFAULT_PLACEHOLDER_IMAGE_URL = "https://placehold.co/80x80.png?text=No+Photo"


def generate_record_id() -> str:
    """Server-side document id."""
    return uuid.uuid4().hex[:20]


class UserProfile(Base):
    """
    User profiles table.

    Attributes:
        id: Identity id from the authentication provider
        email: Email at last sign-in
        name: Full name
    """
    __tablename__ = "user_profiles"

    id = Column(String(128), primary_key=True)
    email = Column(String(320), nullable=False, default="")
    name = Column(String(255), nullable=False, default="")

    def __repr__(self):
        return f"<UserProfile(id='{self.id}', email='{self.email}')>"

    def to_dict(self):
        return {"id": self.id, "email": self.email, "name": self.name}


class School(Base):
    """
    Schools table.

    Attributes:
        id: Server-assigned identifier
        owner_user_id: Owning identity (partition key)
        name: School name
        class_names: Ordered, de-duplicated class labels
    """
    __tablename__ = "schools"
    __table_args__ = (Index("ix_schools_owner", "owner_user_id"),)

    id = Column(String(36), primary_key=True, default=generate_record_id)
    owner_user_id = Column(String(128), nullable=False)
    name = Column(String(255), nullable=False)
    class_names = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<School(id='{self.id}', owner='{self.owner_user_id}', name='{self.name}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "name": self.name,
            "class_names": list(self.class_names or []),
        }


class Student(Base):
    """
    Students table.

    Attributes:
        id: Server-assigned identifier
        owner_user_id: Owning identity (partition key)
        school_id: School within the same owner's partition
        class_name: One of the school's class labels (not enforced here)
        date_of_birth: Calendar date, no time component
        photo_asset_ref: Asset store id of the photo, None when no photo
    """
    __tablename__ = "students"
    __table_args__ = (
        Index("ix_students_owner_school", "owner_user_id", "school_id"),
        Index("ix_students_owner_school_class", "owner_user_id", "school_id", "class_name"),
    )

    id = Column(String(36), primary_key=True, default=generate_record_id)
    owner_user_id = Column(String(128), nullable=False)
    school_id = Column(String(36), nullable=False)
    class_name = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    father_name = Column(String(255), nullable=False, default="")
    roll_number = Column(String(50), nullable=False, default="")
    date_of_birth = Column(Date, nullable=True)
    address = Column(String(500), nullable=False, default="")
    contact_number = Column(String(50), nullable=False, default="")
    photo_asset_ref = Column(String(36), nullable=True)

    def __repr__(self):
        return f"<Student(id='{self.id}', owner='{self.owner_user_id}', name='{self.name}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "school_id": self.school_id,
            "class_name": self.class_name,
            "name": self.name,
            "father_name": self.father_name,
            "roll_number": self.roll_number,
            "date_of_birth": self.date_of_birth,
            "address": self.address,
            "contact_number": self.contact_number,
            "photo_asset_ref": self.photo_asset_ref,
        }
