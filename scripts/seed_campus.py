"""
Seed the local database with roles, demo users, the general chat channel
and faculty directory rows.

Usage:
  python scripts/seed_campus.py

This script is idempotent: running it multiple times will upsert the same
records based on unique fields (role name, user email, faculty email).
"""

from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

from campushub.db import SessionLocal, Base, engine  # noqa: E402
from campushub.models.models import User, Role, FacultyMember, ChatChannel  # noqa: E402
from campushub.auth.security import get_password_hash  # noqa: E402


ROLES = {
    "student": "Student",
    "faculty": "Faculty member",
    "hod": "Head of department",
    "assistant_dean": "Assistant dean",
    "dean": "Dean",
    "moderator": "Board moderator",
    "admin": "Administrator",
}

DEMO_PASSWORD = "campus-demo-1"

USERS = [
    # email, full name, institution id, department, roles
    ("admin@campus.edu", "Campus Admin", "ADM001", None, ["admin"]),
    ("dean@campus.edu", "Dr. Meera Rao", "FAC100", None, ["dean"]),
    ("hod.cse@campus.edu", "Dr. Arun Kumar", "FAC101", "CSE", ["hod"]),
    ("asst.dean@campus.edu", "Dr. Lata Iyer", "FAC102", "CSE", ["assistant_dean"]),
    ("faculty1@campus.edu", "Prof. Ravi Shankar", "FAC103", "CSE", ["faculty"]),
    ("faculty2@campus.edu", "Prof. Sneha Pillai", "FAC104", "ECE", ["faculty"]),
    ("student1@campus.edu", "Aditya Verma", "VTU21001", "CSE", ["student"]),
    ("student2@campus.edu", "Priya Nair", "VTU21002", "CSE", ["student"]),
]

FACULTY = [
    # email, cabin, subjects
    ("hod.cse@campus.edu", "A-101", "Operating Systems, Compilers"),
    ("asst.dean@campus.edu", "A-102", "Databases"),
    ("faculty1@campus.edu", "B-204", "Data Structures, Algorithms"),
    ("faculty2@campus.edu", "C-310", "Signals and Systems"),
]


def ensure_role(session, name: str, description: str) -> Role:
    role = session.query(Role).filter(Role.name == name).first()
    if role:
        if role.description != description:
            role.description = description
        return role
    role = Role(name=name, description=description)
    session.add(role)
    session.flush()
    return role


def ensure_user(session, email: str, full_name: str, institution_id, department, roles: list[str]) -> User:
    user = session.query(User).filter(User.email == email).first()
    if not user:
        user = User(email=email, full_name=full_name, password_hash=get_password_hash(DEMO_PASSWORD))
        session.add(user)
    user.full_name = full_name
    user.institution_id = institution_id
    user.department = department
    user.roles = session.query(Role).filter(Role.name.in_(roles)).all()
    session.flush()
    return user


def ensure_faculty(session, user: User, cabin: str, subjects: str) -> FacultyMember:
    member = session.query(FacultyMember).filter(FacultyMember.email == user.email).first()
    if not member:
        member = FacultyMember(email=user.email, name=user.full_name)
        session.add(member)
    member.user_id = user.id
    member.name = user.full_name
    member.department = user.department
    member.cabin_number = cabin
    member.subjects = subjects
    member.role = user.roles[0].name if user.roles else "faculty"
    member.updated_at = datetime.utcnow()
    return member


def main() -> None:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        for name, description in ROLES.items():
            ensure_role(session, name, description)
        users = {}
        for email, full_name, inst_id, dept, roles in USERS:
            users[email] = ensure_user(session, email, full_name, inst_id, dept, roles)
        for email, cabin, subjects in FACULTY:
            ensure_faculty(session, users[email], cabin, subjects)
        if not session.query(ChatChannel).filter(ChatChannel.type == "general").first():
            session.add(ChatChannel(name="General", type="general"))
        session.commit()
        print(f"Seeded {len(ROLES)} roles, {len(USERS)} users, {len(FACULTY)} faculty records")
        print(f"Demo password for all users: {DEMO_PASSWORD}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
