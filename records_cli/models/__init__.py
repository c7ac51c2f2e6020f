from typing import Literal, Optional

from nanoid import generate
from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


UserRoleType = Literal["user", "admin"]
CorrectionStatus = Literal["pending", "approved", "rejected"]


class StudentRecord(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=lambda: generate()
    )
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    gender: Mapped[str] = mapped_column(String, nullable=False)
    nisn: Mapped[Optional[str]] = mapped_column(String, index=True)
    class_label: Mapped[Optional[str]] = mapped_column(String)
    birth_place: Mapped[Optional[str]] = mapped_column(String)
    birth_date: Mapped[Optional[str]] = mapped_column(String)
    nik: Mapped[Optional[str]] = mapped_column(String)
    religion: Mapped[str] = mapped_column(String, nullable=False)

    address: Mapped[Optional[str]] = mapped_column(String)
    rt: Mapped[Optional[str]] = mapped_column(String)
    rw: Mapped[Optional[str]] = mapped_column(String)
    dusun: Mapped[Optional[str]] = mapped_column(String)
    kelurahan: Mapped[Optional[str]] = mapped_column(String)
    kecamatan: Mapped[Optional[str]] = mapped_column(String)
    postal_code: Mapped[Optional[str]] = mapped_column(String)

    residence_type: Mapped[str] = mapped_column(String, nullable=False)
    transport_mode: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String)
    mobile_phone: Mapped[str] = mapped_column(String, nullable=False)

    father_name: Mapped[str] = mapped_column(String, nullable=False)
    father_birth_year: Mapped[Optional[str]] = mapped_column(String)
    father_education: Mapped[Optional[str]] = mapped_column(String)
    father_occupation: Mapped[Optional[str]] = mapped_column(String)
    father_income: Mapped[Optional[str]] = mapped_column(String)
    father_nik: Mapped[Optional[str]] = mapped_column(String)

    mother_name: Mapped[str] = mapped_column(String, nullable=False)
    mother_birth_year: Mapped[Optional[str]] = mapped_column(String)
    mother_education: Mapped[Optional[str]] = mapped_column(String)
    mother_occupation: Mapped[Optional[str]] = mapped_column(String)
    mother_income: Mapped[Optional[str]] = mapped_column(String)
    mother_nik: Mapped[Optional[str]] = mapped_column(String)

    guardian_name: Mapped[Optional[str]] = mapped_column(String)
    guardian_birth_year: Mapped[Optional[str]] = mapped_column(String)
    guardian_education: Mapped[Optional[str]] = mapped_column(String)
    guardian_occupation: Mapped[Optional[str]] = mapped_column(String)
    guardian_income: Mapped[Optional[str]] = mapped_column(String)
    guardian_nik: Mapped[Optional[str]] = mapped_column(String)

    kk_number: Mapped[Optional[str]] = mapped_column(String)
    child_order: Mapped[Optional[str]] = mapped_column(String)
    siblings_count: Mapped[Optional[str]] = mapped_column(String)
    previous_school: Mapped[Optional[str]] = mapped_column(String)
    birth_certificate_reg_no: Mapped[Optional[str]] = mapped_column(String)
    kip_number: Mapped[Optional[str]] = mapped_column(String)
    kip_name: Mapped[Optional[str]] = mapped_column(String)
    kks_pkh_number: Mapped[Optional[str]] = mapped_column(String)
    weight: Mapped[Optional[str]] = mapped_column(String)
    height: Mapped[Optional[str]] = mapped_column(String)
    head_circumference: Mapped[Optional[str]] = mapped_column(String)

    academic_year: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_students_year_created", "academic_year", "created_at", "id"),
    )

    def __repr__(self) -> str:
        return (
            f"<StudentRecord id={self.id!r} full_name={self.full_name!r} "
            f"academic_year={self.academic_year!r}>"
        )


class CorrectionRequest(Base):
    __tablename__ = "correction_requests"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=lambda: generate()
    )
    student_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    student_name: Mapped[str] = mapped_column(String, nullable=False)
    requested_by_user_id: Mapped[str] = mapped_column(String, nullable=False)
    requested_by_user_name: Mapped[str] = mapped_column(String, nullable=False)
    field_to_correct: Mapped[str] = mapped_column(String, nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(String)
    new_value: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[CorrectionStatus] = mapped_column(
        String, nullable=False, default="pending", index=True
    )
    request_date: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_by_user_id: Mapped[Optional[str]] = mapped_column(String)
    approval_date: Mapped[Optional[int]] = mapped_column(Integer)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<CorrectionRequest id={self.id!r} student_id={self.student_id!r} "
            f"field={self.field_to_correct!r} status={self.status!r}>"
        )


class UserRole(Base):
    __tablename__ = "user_roles"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    role: Mapped[UserRoleType] = mapped_column(String, nullable=False, default="user")
    email: Mapped[Optional[str]] = mapped_column(String)

    def __repr__(self) -> str:
        return f"<UserRole user_id={self.user_id!r} role={self.role!r} email={self.email!r}>"


class AvailableAcademicYear(Base):
    __tablename__ = "available_academic_years"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=lambda: generate()
    )
    # No unique constraint: uniqueness is checked before insert.
    year: Mapped[str] = mapped_column(String, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<AvailableAcademicYear id={self.id!r} year={self.year!r}>"
