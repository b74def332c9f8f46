import pytest

from backoffice.models import Role
from backoffice.services.order_service import OrderService
from backoffice.services.user_service import UserService


@pytest.fixture
def service(db_session):
    return UserService(db_session)


def test_register_creates_customer(service):
    success, message, user = service.register("Jane Doe", " Jane@Example.com ", "secret1")

    assert success, message
    assert user.role == Role.CUSTOMER
    assert user.email == "jane@example.com"
    assert user.passwordHash != "secret1"
    assert service.authenticate("JANE@example.com", "secret1").userID == user.userID
    assert service.authenticate("jane@example.com", "wrong") is None


@pytest.mark.parametrize(
    "name, email, password, expected",
    [
        ("", "a@example.com", "secret1", "Name, email, and password are required"),
        ("Ann", "not-an-email", "secret1", "Invalid email address"),
        ("Ann", "a@example.com", "123", "Password must be at least 6 characters"),
    ],
)
def test_register_validation(service, name, email, password, expected):
    assert service.register(name, email, password) == (False, expected, None)


def test_register_rejects_duplicate_email(service, make_user):
    make_user(email="taken@example.com")

    assert service.register("Other", "TAKEN@example.com", "secret1") == (False, "Email already exists", None)


def test_update_profile_requires_current_password(service, make_user):
    user = make_user(password="firstpass")

    assert service.update_profile(user, {"password": "changed1"})[1] == "Current password is incorrect"

    success, _, user = service.update_profile(user, {"password": "changed1", "currentPassword": "firstpass"})
    assert success
    assert service.authenticate(user.email, "changed1") is not None


def test_update_user_role_rules(service, make_user):
    staff = make_user(Role.STAFF)
    customer = make_user(Role.CUSTOMER)

    assert service.update_user(customer.userID, {"role": "salesman"})[1] == "Staff ID is required for salesman role"
    assert service.update_user(customer.userID, {"role": "salesman", "staffId": customer.userID})[1] == "Invalid staff ID"
    assert service.update_user(customer.userID, {"role": "pilot"})[1] == "Invalid role"
    assert service.update_user("missing", {"name": "x"})[1] == "User not found"

    success, _, promoted = service.update_user(customer.userID, {"role": "salesman", "staffId": staff.userID})
    assert success
    assert promoted.role == Role.SALESMAN
    assert promoted.staffID == staff.userID

    success, _, demoted = service.update_user(customer.userID, {"role": "customer"})
    assert success
    assert demoted.staffID is None


def test_salesman_edits_keep_assigned_staff(service, make_user):
    staff = make_user(Role.STAFF)
    salesman = make_user(Role.SALESMAN, staff=staff)

    success, message, renamed = service.update_user(salesman.userID, {"name": "Renamed"})
    assert success, message
    assert renamed.name == "Renamed"
    assert renamed.staffID == staff.userID

    success, message, same_role = service.update_user(salesman.userID, {"role": "salesman", "email": "new@example.com"})
    assert success, message
    assert same_role.email == "new@example.com"
    assert same_role.staffID == staff.userID


def test_guest_role_is_read_as_customer(service, make_user):
    user = make_user(Role.STAFF)

    success, _, user = service.update_user(user.userID, {"role": "guest"})

    assert success
    assert user.role == Role.CUSTOMER


def test_assign_salesman_and_staff_listing(service, make_user):
    first_staff = make_user(Role.STAFF)
    second_staff = make_user(Role.STAFF)
    salesman = make_user(Role.SALESMAN, staff=first_staff)

    assert service.assign_salesman(salesman.userID, first_staff.userID)[0]
    assert service.assign_salesman(first_staff.userID, second_staff.userID)[1] == "Invalid salesman or staff ID"

    success, _, moved = service.assign_salesman(salesman.userID, second_staff.userID)
    assert success
    assert moved.staffID == second_staff.userID
    assert service.salesmen_for_staff(first_staff) == []
    assert [s.userID for s in service.salesmen_for_staff(second_staff)] == [salesman.userID]


def test_delete_user_rules(db_session, service, sales_team, make_product, make_city, make_delivery_service,
                           order_payload):
    admin, customer = sales_team["admin"], sales_team["customer"]
    city = make_city()
    payload = order_payload(customer, make_delivery_service(), city, (make_product(), 1))
    assert OrderService(db_session).create_order(sales_team["salesman"], payload)[0]

    assert service.delete_user(admin.userID, acting_user=admin) == (False, "You cannot delete your own account")
    assert not service.delete_user(customer.userID, acting_user=admin)[0]
    assert service.delete_user("missing", acting_user=admin) == (False, "User not found")

    idle = service.create_user("Idle", "idle@example.com", "secret1")
    db_session.commit()
    assert service.delete_user(idle.userID, acting_user=admin) == (True, "User deleted successfully")
    assert service.get_user(idle.userID) is None
