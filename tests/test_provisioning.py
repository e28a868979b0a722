"""
Tests for employee provisioning and the create-employee HTTP function:
two-step ordering, partial failure, request validation, CORS responses.
"""
import json
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from factories import PASSWORD
from training_portal.errors import PartialProvisioningFailure, WriteFailed
from training_portal.provisioning import (
    CORS_HEADERS,
    EmployeeRole,
    ProvisionRequest,
    handle_create_employee,
)


def _request(**kw):
    base = {"email": "new@x.com", "name": "New Hire", "department": "Warehouse",
            "temporary_password": PASSWORD, "role": EmployeeRole.EMPLOYEE}
    base.update(kw)
    return ProvisionRequest(**base)


def _event(body, method="POST"):
    return {"httpMethod": method, "body": body if isinstance(body, str) or body is None else json.dumps(body)}


class TestProvisionRequest:
    def test_camel_case_payload(self):
        req = ProvisionRequest.model_validate(
            {"email": "a@x.com", "name": "A", "temporaryPassword": "pw", "role": "manager"})
        assert req.role == EmployeeRole.MANAGER
        assert req.department is None

    def test_blank_email_rejected(self):
        with pytest.raises(ValidationError):
            _request(email="  ")

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            ProvisionRequest.model_validate(
                {"email": "a@x.com", "name": "A", "temporaryPassword": "pw", "role": "admin"})

    def test_role_groups(self):
        assert EmployeeRole.MANAGER.group == "Managers"
        assert EmployeeRole.EMPLOYEE.group == "Employees"


class TestEmployeeProvisioner:
    def test_creates_identity_and_record(self, services, store):
        created = services.provisioner().provision(_request())
        assert created.employee.email == "new@x.com"
        assert created.employee.is_active
        record = store.employees.list(user_id=created.employee.user_id)
        assert [e.name for e in record] == ["New Hire"]

    def test_new_user_can_sign_in_with_role(self, services):
        from training_portal.models import Role

        services.provisioner().provision(_request(role=EmployeeRole.MANAGER))
        services.identity.sign_in("new@x.com", PASSWORD)
        assert services.role_resolver().resolve() == Role.MANAGER

    def test_identity_steps_in_order(self, store):
        identity = MagicMock()
        identity.admin_create_user.return_value = MagicMock(subject_id="sub-1", username="new@x.com")
        from training_portal.provisioning import EmployeeProvisioner

        EmployeeProvisioner(identity, store).provision(_request())

        calls = [c[0] for c in identity.method_calls]
        assert calls == ["admin_create_user", "admin_add_user_to_group", "admin_set_user_password"]
        attrs = identity.admin_create_user.call_args.args[1]
        assert attrs["email_verified"] == "true"
        identity.admin_set_user_password.assert_called_once_with("new@x.com", PASSWORD, permanent=True)

    def test_identity_failure_creates_no_record(self, services, store):
        services.provisioner().provision(_request())
        with pytest.raises(WriteFailed):
            services.provisioner().provision(_request(name="Again"))
        assert len(store.employees.list(email="new@x.com")) == 1

    def test_record_failure_is_partial_and_identity_kept(self, services, store):
        with patch.object(store.employees, "create", side_effect=WriteFailed("down")):
            with pytest.raises(PartialProvisioningFailure) as exc_info:
                services.provisioner().provision(_request())
        assert exc_info.value.subject_id
        assert exc_info.value.email == "new@x.com"
        assert services.identity.has_user("new@x.com")
        assert store.employees.list() == []

    def test_group_failure_is_partial_and_identity_kept(self, services, store):
        with patch.object(services.identity, "admin_add_user_to_group",
                          side_effect=WriteFailed("group missing")):
            with pytest.raises(PartialProvisioningFailure) as exc_info:
                services.provisioner().provision(_request())
        assert exc_info.value.subject_id
        assert isinstance(exc_info.value.cause, WriteFailed)
        assert services.identity.has_user("new@x.com")
        assert store.employees.list() == []

    def test_password_failure_is_partial(self, services, store):
        with patch.object(services.identity, "admin_set_user_password",
                          side_effect=WriteFailed("policy")):
            with pytest.raises(PartialProvisioningFailure):
                services.provisioner().provision(_request())
        assert store.employees.list() == []


class TestHandleCreateEmployee:
    def test_options_preflight(self, services):
        resp = handle_create_employee({"httpMethod": "OPTIONS"}, services.provisioner())
        assert resp["statusCode"] == 200
        assert resp["body"] == ""
        assert resp["headers"] == CORS_HEADERS

    def test_missing_body(self, services):
        resp = handle_create_employee(_event(None), services.provisioner())
        assert resp["statusCode"] == 400
        assert json.loads(resp["body"])["error"] == "Request body is required"

    def test_missing_fields(self, services):
        resp = handle_create_employee(_event({"email": "a@x.com"}), services.provisioner())
        assert resp["statusCode"] == 400
        assert json.loads(resp["body"]) == {
            "success": False,
            "error": "Email, name, temporaryPassword, and role are required",
        }

    def test_invalid_json(self, services):
        resp = handle_create_employee(_event("{not json"), services.provisioner())
        assert resp["statusCode"] == 400

    def test_success(self, services):
        body = {"email": "a@x.com", "name": "A", "department": "Shipping",
                "temporaryPassword": PASSWORD, "role": "employee"}
        resp = handle_create_employee(_event(body), services.provisioner())
        assert resp["statusCode"] == 200
        payload = json.loads(resp["body"])
        assert payload["success"] is True
        assert payload["message"] == "Employee created successfully"
        assert payload["employee"]["email"] == "a@x.com"
        assert payload["employee"]["role"] == "employee"
        assert resp["headers"]["Access-Control-Allow-Origin"] == "*"

    def test_provisioning_error_is_500(self, services):
        body = {"email": "a@x.com", "name": "A", "temporaryPassword": PASSWORD, "role": "employee"}
        handle_create_employee(_event(body), services.provisioner())
        resp = handle_create_employee(_event(body), services.provisioner())
        assert resp["statusCode"] == 500
        assert json.loads(resp["body"])["success"] is False
