"""
provisioning.py — Employee provisioning (manager operation)
===========================================================
Creates an employee as two ordered, non-atomic steps:

  1. Identity: create the account (email + verified email attributes,
     welcome message suppressed), add it to ``Employees`` or ``Managers``,
     and make the temporary password permanent straight away.
  2. Record: create the Employee row linking the new identity's subject id.

If anything after account creation fails (group, password or record), the
identity is *not* rolled back.  The failure is logged as a warning and
raised as ``PartialProvisioningFailure`` carrying the subject id, so a
reconciliation job can finish or undo it later.

``handle_create_employee`` wraps the provisioner as the HTTP function the
admin portal calls (JSON body, CORS, OPTIONS preflight).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from training_portal.datastore import DataStore
from training_portal.errors import PartialProvisioningFailure
from training_portal.identity import IdentityProvider
from training_portal.models import EMPLOYEES_GROUP, MANAGERS_GROUP, Employee

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token",
    "Access-Control-Allow-Methods": "OPTIONS,POST",
}


class EmployeeRole(str, Enum):
    EMPLOYEE = "employee"
    MANAGER  = "manager"

    @property
    def group(self) -> str:
        return MANAGERS_GROUP if self is EmployeeRole.MANAGER else EMPLOYEES_GROUP


class ProvisionRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email:               str
    name:                str
    department:          Optional[str] = None
    temporary_password:  str
    role:                EmployeeRole

    @field_validator("email", "name", "temporary_password")
    @classmethod
    def _required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("required")
        return v.strip()


@dataclass
class ProvisionedEmployee:
    employee:  Employee
    role:      EmployeeRole

    def to_payload(self) -> dict:
        return {
            "id":         self.employee.id,
            "userId":     self.employee.user_id,
            "email":      self.employee.email,
            "name":       self.employee.name,
            "department": self.employee.department,
            "role":       self.role.value,
            "isActive":   self.employee.is_active,
        }


class EmployeeProvisioner:
    def __init__(self, identity: IdentityProvider, store: DataStore):
        self.identity = identity
        self.store = store

    def provision(self, request: ProvisionRequest) -> ProvisionedEmployee:
        logger.info("Creating employee %s (%s)", request.email, request.role.value)

        # Step 1: identity
        user = self.identity.admin_create_user(
            request.email,
            {"email": request.email, "email_verified": "true", "name": request.name},
            request.temporary_password,
        )

        # Everything after this point leaves a stray identity on failure
        try:
            self.identity.admin_add_user_to_group(user.username, request.role.group)
            self.identity.admin_set_user_password(
                user.username, request.temporary_password, permanent=True
            )
            logger.info("Identity %s created in group %s", user.subject_id, request.role.group)

            # Step 2: employee record
            employee = self.store.employees.create({
                "user_id": user.subject_id,
                "email": request.email,
                "name": request.name,
                "department": request.department or None,
                "is_active": True,
            })
        except Exception as exc:
            logger.warning(
                "Identity %s (%s) created but provisioning did not finish; needs reconciliation: %s",
                user.subject_id, request.email, exc,
            )
            raise PartialProvisioningFailure(user.subject_id, request.email, exc) from exc

        logger.info("Employee created successfully: %s", employee.id)
        return ProvisionedEmployee(employee=employee, role=request.role)


# ─── HTTP function ───────────────────────────────────────────────────────────

def _response(status: int, body: Any) -> dict:
    return {
        "statusCode": status,
        "headers": dict(CORS_HEADERS),
        "body": body if isinstance(body, str) else json.dumps(body),
    }


def handle_create_employee(event: dict, provisioner: EmployeeProvisioner) -> dict:
    """API-gateway style handler: ``event`` has ``httpMethod`` and a JSON ``body``."""
    if event.get("httpMethod") == "OPTIONS":
        return _response(200, "")

    if not event.get("body"):
        return _response(400, {"success": False, "error": "Request body is required"})

    try:
        payload = json.loads(event["body"])
        request = ProvisionRequest.model_validate(payload)
    except (json.JSONDecodeError, ValidationError, TypeError) as exc:
        logger.info("Rejected create-employee request: %s", exc)
        return _response(400, {
            "success": False,
            "error": "Email, name, temporaryPassword, and role are required",
        })

    try:
        created = provisioner.provision(request)
    except Exception as exc:
        logger.error("Error creating employee: %s", exc)
        return _response(500, {"success": False, "error": str(exc) or "Internal server error"})

    return _response(200, {
        "success": True,
        "message": "Employee created successfully",
        "employee": created.to_payload(),
    })
