from decimal import Decimal

from brgy_payroll.database import SessionLocal, init_db
from brgy_payroll.models.deduction import CalculationType, DeductionType
from brgy_payroll.models.personnel import Personnel, Position, UserRole

init_db()
db = SessionLocal()


def get_or_create_position(name, salary, department="Barangay Hall"):
    position = db.query(Position).filter(Position.name == name).first()
    if position:
        return position
    position = Position(name=name, department=department, basic_salary=Decimal(salary))
    db.add(position)
    db.commit()
    db.refresh(position)
    print(f"Created position {name} -> {salary}")
    return position


def create_person(email, name, role, position):
    # Check if user already exists to avoid unique constraint errors
    existing = db.query(Personnel).filter(Personnel.email == email).first()
    if existing:
        print(f"Personnel {email} already exists. Skipping.")
        return

    person = Personnel(email=email, name=name, role=role, is_active=True, position_id=position.id)
    db.add(person)
    db.commit()
    db.refresh(person)
    print(f"Created {role.value} -> {email} (id {person.id})")


def create_deduction_type(name, calculation_type, value, mandatory=True):
    if db.query(DeductionType).filter(DeductionType.name == name).first():
        print(f"Deduction type {name} already exists. Skipping.")
        return
    dtype = DeductionType(name=name, calculation_type=calculation_type, is_mandatory=mandatory)
    if calculation_type == CalculationType.PERCENTAGE:
        dtype.percentage_value = Decimal(value)
    else:
        dtype.amount = Decimal(value)
    db.add(dtype)
    db.commit()
    print(f"Created deduction type {name}")


treasurer = get_or_create_position("Barangay Treasurer", "30000.00")
secretary = get_or_create_position("Barangay Secretary", "25000.00")
tanod = get_or_create_position("Barangay Tanod", "12000.00", department="Peace and Order")

create_person("treasurer@barangay.local", "Barangay Treasurer", UserRole.ADMIN, treasurer)
create_person("secretary@barangay.local", "Barangay Secretary", UserRole.PERSONNEL, secretary)
create_person("tanod@barangay.local", "Barangay Tanod", UserRole.PERSONNEL, tanod)

create_deduction_type("GSIS", CalculationType.PERCENTAGE, "9")
create_deduction_type("PhilHealth", CalculationType.PERCENTAGE, "2.5")
create_deduction_type("Pag-IBIG", CalculationType.FIXED, "200.00")

db.close()
