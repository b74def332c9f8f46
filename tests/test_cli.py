from backoffice.config import Config
from backoffice.models import Order, Product, Role, User


def test_create_admin_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["create-admin", "--email", "root@example.com", "--password", "rootpass"])
    second = runner.invoke(args=["create-admin", "--email", "root@example.com", "--password", "rootpass"])

    assert first.exit_code == 0, first.output
    assert "Admin user created" in first.output
    assert "already exists" in second.output
    admins = db_session.query(User).filter(User.role == Role.ADMIN).all()
    assert [a.email for a in admins] == ["root@example.com"]


def test_seed_builds_a_consistent_dataset(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "seed", "--staff", "2", "--salesmen", "3", "--customers", "3",
        "--services", "3", "--products", "6", "--orders", "4", "--seed", "7",
    ])

    assert result.exit_code == 0, result.output
    assert db_session.query(Product).count() == 6
    assert db_session.query(User).filter(User.email == Config.ADMIN_EMAIL).count() == 1
    salesmen = db_session.query(User).filter(User.role == Role.SALESMAN).all()
    assert len(salesmen) == 3
    assert all(s.staffID for s in salesmen)
    for order in db_session.query(Order).all():
        assert order.salesmanID in {s.userID for s in salesmen}
        assert order.salesman_commission > 0
