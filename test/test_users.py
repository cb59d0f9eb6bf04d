"""
Tests for user management and the last-admin / self-deletion rules.
"""

import pytest

from restopos import store
from restopos.errors import BusinessRuleError
from restopos.models import User, UserRole, UserUpdate
from restopos.restaurant_service import delete_user, update_user
from restopos.security import RequestContext, get_password_hash


def add_superadmin(db_session, restaurant_id, email="super2@test.com"):
    return store.add_doc(db_session, "users", {
        "name": "Otro",
        "email": email,
        "hashed_password": get_password_hash("x"),
        "role": UserRole.superadmin,
        "restaurant_id": restaurant_id,
    })


def outside_superadmin(seed):
    """Context of a superadmin that is not stored, so the stored one is the last."""
    ghost = User(
        id="ghost",
        email="ghost@test.com",
        hashed_password="x",
        role=UserRole.superadmin,
        restaurant_id=seed.first.id,
    )
    return RequestContext(user=ghost, active_restaurant_id=seed.first.id)


class TestUserListing:
    def test_admin_lists_own_restaurant(self, admin_client, seed):
        response = admin_client.get("/users")
        assert response.status_code == 200
        emails = {u["email"] for u in response.json()}
        assert emails == {"admin@test.com", "seller@test.com", "waiter@test.com"}

    def test_admin_does_not_see_superadmins(self, admin_client, db_session, seed):
        add_superadmin(db_session, seed.second.id)
        emails = {u["email"] for u in admin_client.get("/users").json()}
        assert "super2@test.com" not in emails

    def test_superadmin_sees_everyone_under_all(self, super_client, seed):
        response = super_client.get("/users")
        assert len(response.json()) == 4

    def test_seller_cannot_manage_users(self, seller_client, seed):
        assert seller_client.get("/users").status_code == 403
        response = seller_client.post("/users", json={"email": "x@test.com", "password": "x"})
        assert response.status_code == 403


class TestUserCreation:
    def test_admin_creates_waiter(self, admin_client, make_client, seed):
        response = admin_client.post("/users", json={
            "name": "Carlos", "email": "carlos@test.com", "password": "carlospass",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "waiter"
        assert data["restaurant_id"] == seed.second.id

        carlos = make_client(("carlos@test.com", "carlospass"))
        assert carlos.get("/session").json()["active_restaurant_id"] == seed.second.id

    def test_duplicate_email_in_restaurant(self, admin_client, seed):
        response = admin_client.post("/users", json={
            "email": "seller@test.com", "password": "x", "role": "seller",
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "El correo electrónico ya existe en este restaurante."

    def test_admin_cannot_create_admins(self, admin_client, seed):
        for role in ("admin", "superadmin"):
            response = admin_client.post("/users", json={
                "email": f"{role}2@test.com", "password": "x", "role": role,
            })
            assert response.status_code == 403

    def test_superadmin_needs_a_restaurant_selected(self, super_client, seed):
        response = super_client.post("/users", json={"email": "x@test.com", "password": "x"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Por favor, selecciona un restaurante específico."

    def test_superadmin_creates_admin_in_selected_restaurant(self, super_client, seed):
        super_client.put("/session/restaurant", json={"restaurant_id": seed.second.id})
        response = super_client.post("/users", json={
            "email": "jefe@test.com", "password": "x", "role": "admin",
        })
        assert response.status_code == 200
        assert response.json()["restaurant_id"] == seed.second.id


class TestUserUpdates:
    def test_admin_promotes_waiter_to_seller(self, admin_client, seed):
        response = admin_client.put(f"/users/{seed.waiter_id}", json={"role": "seller", "name": "W"})
        assert response.status_code == 200
        assert response.json()["role"] == "seller"
        assert response.json()["name"] == "W"

    def test_cannot_change_own_role(self, admin_client, seed):
        response = admin_client.put(f"/users/{seed.admin_id}", json={"role": "seller"})
        assert response.status_code == 403

    def test_admin_cannot_edit_superadmin(self, admin_client, db_session, seed):
        other = add_superadmin(db_session, seed.second.id)
        response = admin_client.put(f"/users/{other.id}", json={"name": "Hacked"})
        assert response.status_code == 403

    def test_admin_cannot_reach_other_restaurant(self, admin_client, seed):
        response = admin_client.put(f"/users/{seed.superadmin_id}", json={"name": "X"})
        assert response.status_code == 404

    def test_demoting_last_superadmin_rejected(self, db_session, seed):
        with pytest.raises(BusinessRuleError, match="último superadministrador"):
            update_user(db_session, outside_superadmin(seed), seed.superadmin_id, UserUpdate(role=UserRole.admin))

    def test_demoting_non_last_superadmin(self, super_client, db_session, seed):
        other = add_superadmin(db_session, seed.second.id)
        response = super_client.put(f"/users/{other.id}", json={"role": "admin"})
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    def test_email_change_checked(self, admin_client, seed):
        response = admin_client.put(f"/users/{seed.waiter_id}", json={"email": "seller@test.com"})
        assert response.status_code == 400

    def test_password_change(self, admin_client, make_client, seed):
        admin_client.put(f"/users/{seed.waiter_id}", json={"password": "nueva"})
        make_client(("waiter@test.com", "nueva"))


class TestUserDeletion:
    def test_cannot_delete_self(self, admin_client, seed):
        response = admin_client.delete(f"/users/{seed.admin_id}")
        assert response.status_code == 400
        assert response.json()["detail"] == "No puedes eliminar tu propia cuenta."

    def test_admin_deletes_waiter(self, admin_client, db_session, seed):
        assert admin_client.delete(f"/users/{seed.waiter_id}").status_code == 200
        db_session.expire_all()
        assert store.get_doc(db_session, "users", seed.waiter_id) is None

    def test_last_superadmin_cannot_be_deleted(self, db_session, seed):
        with pytest.raises(BusinessRuleError, match="último superadministrador"):
            delete_user(db_session, outside_superadmin(seed), seed.superadmin_id)

    def test_non_last_superadmin_can_be_deleted(self, super_client, db_session, seed):
        other = add_superadmin(db_session, seed.second.id)
        response = super_client.delete(f"/users/{other.id}")
        assert response.status_code == 200

    def test_last_local_admin_cannot_be_deleted(self, super_client, seed):
        response = super_client.delete(f"/users/{seed.admin_id}")
        assert response.status_code == 400
        assert "último administrador" in response.json()["detail"]

    def test_local_admin_can_go_when_another_remains(self, super_client, db_session, seed):
        store.add_doc(db_session, "users", {
            "email": "admin2@test.com",
            "hashed_password": get_password_hash("x"),
            "role": UserRole.admin,
            "restaurant_id": seed.second.id,
        })
        assert super_client.delete(f"/users/{seed.admin_id}").status_code == 200
