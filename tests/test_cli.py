from artcrm.models import Clinic, Product, Region, User
from artcrm.roles import Role


def test_seed_catalog_is_idempotent(app):
    runner = app.test_cli_runner()

    assert "seeded" in runner.invoke(args=["seed-catalog"]).output
    counts = (Region.query.count(), Product.query.count(), Clinic.query.count())
    runner.invoke(args=["seed-catalog"])

    assert (Region.query.count(), Product.query.count(), Clinic.query.count()) == counts
    assert counts == (3, 4, 3)


def test_create_admin_promotes_existing_user(app, make_user):
    existing = make_user(Role.FIELD_USER, email="boss@example.com", is_active=False)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["create-admin", "Boss@Example.com", "--password", "new-pass"])

    assert result.exit_code == 0
    user = User.query.filter_by(email="boss@example.com").one()
    assert user.id == existing.id
    assert user.role == "admin" and user.is_active
    assert user.check_password("new-pass")


def test_init_db(app):
    result = app.test_cli_runner().invoke(args=["init-db"])
    assert "created" in result.output
