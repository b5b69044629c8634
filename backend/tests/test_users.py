"""
Staff accounts and the last-admin guard.

Demoting or deactivating the only ACTIVE ADMIN is refused before anything
changes. Deleting an ADMIN needs some other ADMIN account, whatever its status.
"""

import pytest

from conftest import PASSWORD
from phonepos.extensions import db
from phonepos.models import Role, User, UserStatus
from phonepos.services import auth_service, sales_service
from phonepos.validation import ConflictError, GuardError, ValidationError


# =============================================================================
# LAST ADMIN
# =============================================================================


class TestLastAdminGuard:

    def test_cannot_delete_last_admin(self, admin_user):
        with pytest.raises(GuardError, match="Cannot delete the last admin user."):
            auth_service.delete_user(admin_user.id)
        assert db.session.get(User, admin_user.id) is not None

    def test_cannot_demote_last_admin(self, client, admin_headers, admin_user):
        resp = client.put(f"/api/users/{admin_user.id}", json={"role": "SELLER"}, headers=admin_headers)

        assert resp.status_code == 400
        db.session.expire_all()
        assert db.session.get(User, admin_user.id).role == Role.ADMIN

    def test_cannot_deactivate_last_admin(self, admin_user):
        with pytest.raises(GuardError):
            auth_service.update_user(admin_user.id, {"status": "INACTIVE"})

    def test_inactive_admin_allows_delete(self, admin_user):
        auth_service.create_user(
            name="Dormant", phone="09555555555", password=PASSWORD, role=Role.ADMIN, status=UserStatus.INACTIVE
        )
        auth_service.delete_user(admin_user.id)

        assert db.session.get(User, admin_user.id) is None
        assert db.session.query(User).filter_by(role=Role.ADMIN).count() == 1

    def test_inactive_admin_does_not_cover_demotion(self, admin_user):
        auth_service.create_user(
            name="Dormant", phone="09555555555", password=PASSWORD, role=Role.ADMIN, status=UserStatus.INACTIVE
        )
        with pytest.raises(GuardError):
            auth_service.update_user(admin_user.id, {"role": "SELLER"})

    def test_admin_deletable_when_another_remains(self, client, admin_headers, admin_user):
        other = auth_service.create_user(name="Partner", phone="09555555555", password=PASSWORD, role=Role.ADMIN)

        resp = client.delete(f"/api/users/{other.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert db.session.query(User).filter_by(role=Role.ADMIN).count() == 1

    def test_cannot_delete_self(self, client, admin_headers, admin_user):
        auth_service.create_user(name="Partner", phone="09555555555", password=PASSWORD, role=Role.ADMIN)

        resp = client.delete(f"/api/users/{admin_user.id}", headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "You cannot delete your own account."


# =============================================================================
# MANAGEMENT
# =============================================================================


class TestUserManagement:

    def test_admin_creates_seller(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"name": "New Seller", "phone": "+959777777777", "password": "abcdef"},
            headers=admin_headers,
        )

        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "SELLER"
        assert resp.json["user"]["phone"] == "09777777777"
        assert "password_hash" not in resp.json["user"]

    def test_seller_cannot_manage_users(self, client, seller_headers):
        assert client.get("/api/users", headers=seller_headers).status_code == 403
        resp = client.post(
            "/api/users",
            json={"name": "Sneaky", "phone": "09777777777", "password": "abcdef", "role": "ADMIN"},
            headers=seller_headers,
        )
        assert resp.status_code == 403
        assert resp.json["required_roles"] == ["ADMIN"]

    def test_duplicate_phone_conflicts(self, admin_user):
        with pytest.raises(ConflictError):
            auth_service.create_user(name="Twin", phone=admin_user.phone, password=PASSWORD)

    @pytest.mark.parametrize("password", ["short", "ကခဂဃငစ"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(ValidationError):
            auth_service.create_user(name="Weak", phone="09777777777", password=password)

    def test_user_with_sales_cannot_be_hard_deleted(self, admin_user, seller_user, make_product):
        product = make_product(stock=1)
        sales_service.create_sale(
            {"items": [{"product_id": product.id, "quantity": 1}], "paid_cents": product.price_cents},
            user_id=seller_user.id,
        )

        with pytest.raises(ConflictError, match="INACTIVE"):
            auth_service.delete_user(seller_user.id, acting_user_id=admin_user.id)

    def test_deactivation_revokes_sessions(self, client, admin_headers, seller_headers, seller_user):
        resp = client.put(f"/api/users/{seller_user.id}", json={"status": "INACTIVE"}, headers=admin_headers)

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=seller_headers).status_code == 401

    def test_unknown_field_rejected(self, client, admin_headers, seller_user):
        resp = client.put(f"/api/users/{seller_user.id}", json={"password_hash": "x"}, headers=admin_headers)
        assert resp.status_code == 400
