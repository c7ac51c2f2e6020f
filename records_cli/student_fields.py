"""
Field definitions for student records.

Every editable attribute of a student record is described once here: its
Indonesian display label, whether it is required, the input rules it must
satisfy and how the spreadsheet export renders it. Record validation,
correction eligibility and the export column layout are all derived from
this list so the three never drift apart.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from records_cli.errors import ValidationError

RELIGION_OPTIONS = ["Islam", "Kristen", "Katolik", "Hindu", "Buddha", "Konghucu", "Lainnya"]
RESIDENCE_OPTIONS = [
    "Bersama Orang Tua",
    "Wali",
    "Kos",
    "Asrama",
    "Panti Asuhan",
    "Lainnya",
]
TRANSPORT_OPTIONS = [
    "Jalan Kaki",
    "Sepeda",
    "Sepeda Motor",
    "Mobil Pribadi",
    "Angkutan Umum",
    "Lainnya",
]
EDUCATION_OPTIONS = ["Tidak Sekolah", "SD", "SMP", "SMA", "D1", "D2", "D3", "D4", "S1", "S2", "S3"]
OCCUPATION_OPTIONS = ["Tidak Bekerja", "Petani", "Buruh", "PNS", "Wiraswasta", "Lainnya"]
INCOME_OPTIONS = [
    "< 500rb",
    "500rb-1jt",
    "1jt-2jt",
    "2jt-5jt",
    "> 5jt",
    "Tidak Berpenghasilan",
]

# Set by the store when a record is created, never through input.
IMMUTABLE_FIELDS = ("id", "academic_year", "created_at")


@dataclass(frozen=True)
class FieldDefinition:
    """A single student record attribute and the rules that apply to it."""

    name: str
    label: str
    required: bool = False
    min_length: int = 1
    digits_only: bool = False
    iso_date: bool = False
    as_text: bool = False
    centered: bool = False
    options: Tuple[str, ...] = ()

    def check(self, value: Optional[str]) -> Optional[str]:
        """Return an error message for ``value`` or None when it is acceptable."""
        if value is None:
            return "is required" if self.required else None
        if len(value) < self.min_length:
            return f"must be at least {self.min_length} characters"
        if self.digits_only and not value.isdigit():
            return "must contain digits only"
        if self.iso_date:
            try:
                date.fromisoformat(value)
            except ValueError:
                return "must be a date in YYYY-MM-DD format"
        return None


def _parent_fields(prefix: str, who: str, required: bool) -> List[FieldDefinition]:
    return [
        FieldDefinition(f"{prefix}_name", f"Nama {who}", required=required),
        FieldDefinition(
            f"{prefix}_birth_year", f"Tahun Lahir {who}", as_text=True, centered=True
        ),
        FieldDefinition(
            f"{prefix}_education", f"Pendidikan {who}", options=tuple(EDUCATION_OPTIONS)
        ),
        FieldDefinition(
            f"{prefix}_occupation", f"Pekerjaan {who}", options=tuple(OCCUPATION_OPTIONS)
        ),
        FieldDefinition(f"{prefix}_income", f"Penghasilan {who}", options=tuple(INCOME_OPTIONS)),
        FieldDefinition(f"{prefix}_nik", f"NIK {who}", as_text=True, centered=True),
    ]


# Order matters: this is the column order of the spreadsheet export.
STUDENT_FIELDS: List[FieldDefinition] = [
    # Data pribadi
    FieldDefinition("full_name", "Nama Lengkap", required=True, min_length=2),
    FieldDefinition("gender", "Jenis Kelamin", required=True, centered=True),
    FieldDefinition("nisn", "NISN", digits_only=True, as_text=True, centered=True),
    FieldDefinition("class_label", "Kelas"),
    FieldDefinition("birth_place", "Tempat Lahir"),
    FieldDefinition("birth_date", "Tanggal Lahir", iso_date=True, centered=True),
    FieldDefinition("nik", "NIK", digits_only=True, as_text=True, centered=True),
    FieldDefinition("religion", "Agama", required=True, options=tuple(RELIGION_OPTIONS)),
    # Alamat
    FieldDefinition("address", "Alamat"),
    FieldDefinition("rt", "RT", as_text=True, centered=True),
    FieldDefinition("rw", "RW", as_text=True, centered=True),
    FieldDefinition("dusun", "Dusun"),
    FieldDefinition("kelurahan", "Kelurahan"),
    FieldDefinition("kecamatan", "Kecamatan"),
    FieldDefinition("postal_code", "Kode Pos", as_text=True, centered=True),
    # Kontak & lainnya
    FieldDefinition(
        "residence_type", "Jenis Tinggal", required=True, options=tuple(RESIDENCE_OPTIONS)
    ),
    FieldDefinition(
        "transport_mode", "Alat Transportasi", required=True, options=tuple(TRANSPORT_OPTIONS)
    ),
    FieldDefinition("phone", "Telepon", as_text=True),
    FieldDefinition("mobile_phone", "No. HP", required=True, as_text=True),
    *_parent_fields("father", "Ayah", required=True),
    *_parent_fields("mother", "Ibu", required=True),
    *_parent_fields("guardian", "Wali", required=False),
    # Data tambahan
    FieldDefinition("kk_number", "No. KK", as_text=True, centered=True),
    FieldDefinition("child_order", "Anak ke-", as_text=True, centered=True),
    FieldDefinition("siblings_count", "Jml Saudara Kandung", as_text=True, centered=True),
    FieldDefinition("previous_school", "Sekolah Asal"),
    FieldDefinition("birth_certificate_reg_no", "No. Registrasi Akta Lahir", as_text=True),
    FieldDefinition("kip_number", "Nomor KIP", as_text=True),
    FieldDefinition("kip_name", "Nama di KIP"),
    FieldDefinition("kks_pkh_number", "Nomor KKS/PKH", as_text=True),
    FieldDefinition("weight", "Berat Badan (kg)", as_text=True, centered=True),
    FieldDefinition("height", "Tinggi Badan (cm)", as_text=True, centered=True),
    FieldDefinition("head_circumference", "Lingkar Kepala (cm)", as_text=True, centered=True),
]

FIELDS_BY_NAME: Dict[str, FieldDefinition] = {f.name: f for f in STUDENT_FIELDS}

REQUIRED_FIELDS: List[FieldDefinition] = [f for f in STUDENT_FIELDS if f.required]

# Every editable field may be the target of a correction request.
CORRECTABLE_FIELDS: List[str] = [f.name for f in STUDENT_FIELDS]


def get_field(name: str) -> Optional[FieldDefinition]:
    return FIELDS_BY_NAME.get(name)


def field_label(name: str) -> str:
    definition = FIELDS_BY_NAME.get(name)
    return definition.label if definition else name


def normalize_value(value: Any) -> Optional[str]:
    """Convert raw input to the stored string form; blanks become None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date().isoformat()
    elif isinstance(value, date):
        value = value.isoformat()
    text = str(value).strip()
    return text or None


def clean_student_fields(
    values: Mapping[str, Any], partial: bool = False
) -> Dict[str, Optional[str]]:
    """
    Validate and normalize student record input.

    Args:
        values: Mapping of field name to raw value
        partial: When True (updates), required fields may be omitted but
            still cannot be blanked

    Returns:
        Mapping of field name to normalized value

    Raises:
        ValidationError: Listing every field that failed
    """
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Optional[str]] = {}

    for name, raw in values.items():
        definition = FIELDS_BY_NAME.get(name)
        if definition is None:
            if name in IMMUTABLE_FIELDS:
                errors[name] = "cannot be set or changed"
            else:
                errors[name] = "unknown field"
            continue

        value = normalize_value(raw)
        message = definition.check(value)
        if message:
            errors[name] = message
            continue
        cleaned[name] = value

    if not partial:
        for definition in REQUIRED_FIELDS:
            if definition.name not in values and definition.name not in errors:
                errors[definition.name] = "is required"

    if errors:
        raise ValidationError(errors)

    return cleaned
