"""
identity.py — Identity provider contract
========================================
The workflow needs three things from the identity provider: who is signed
in (``get_current_user``), which groups they belong to (``fetch_session``),
and, for manager provisioning, the admin calls that create a user, put it in
a group and fix its password.

``AuthSession.group_claims`` is passed through *raw*: depending on the token
it may be absent, a single string, or a list.  Normalisation happens once in
``roles.normalize_group_claims``.

Adapters
--------
  CognitoIdentityProvider   Cognito user pool via boto3 (live mode)
  LocalIdentityProvider     in-process user directory (local mode, tests)
"""

from __future__ import annotations

import base64
import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from training_portal.errors import AuthFailure, FetchFailed, WriteFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    subject_id:  str   # stable identity subject ("sub"); Employee.userId points here
    username:    str


@dataclass(frozen=True)
class AuthSession:
    subject_id:    str
    username:      str
    group_claims:  Any = None   # absent | "Managers" | ["Managers", ...]


class IdentityProvider:
    """Interface shared by the live and local identity adapters."""

    def sign_in(self, username: str, password: str) -> CurrentUser:
        raise NotImplementedError

    def get_current_user(self) -> CurrentUser:
        raise NotImplementedError

    def fetch_session(self, force_refresh: bool = False) -> AuthSession:
        raise NotImplementedError

    def sign_out(self) -> None:
        raise NotImplementedError

    # ── Admin operations (provisioning) ─────────────────────────────────────

    def admin_create_user(
        self, username: str, attributes: dict[str, str], temporary_password: str
    ) -> CurrentUser:
        raise NotImplementedError

    def admin_add_user_to_group(self, username: str, group: str) -> None:
        raise NotImplementedError

    def admin_set_user_password(self, username: str, password: str, permanent: bool = True) -> None:
        raise NotImplementedError

    def admin_get_user(self, username: str) -> Optional[CurrentUser]:
        """The existing account for ``username``, or None."""
        raise NotImplementedError

    def admin_delete_user(self, username: str) -> None:
        raise NotImplementedError


# ─── Local directory ─────────────────────────────────────────────────────────

@dataclass
class _LocalUser:
    subject_id:  str
    username:    str
    password:    str
    attributes:  dict[str, str] = field(default_factory=dict)
    groups:      list[str] = field(default_factory=list)
    permanent:   bool = False


class LocalIdentityProvider(IdentityProvider):
    """
    In-process user directory, optionally persisted to a JSON file.  ``sign_in`` establishes the current session;
    everything else behaves like the hosted provider, including raising
    ``AuthFailure`` when nobody is signed in.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path else None
        self._users: dict[str, _LocalUser] = {}
        self._current: Optional[str] = None
        self._load()

    # ── Directory file (local mode keeps users between CLI runs) ─────────────

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
        self._users = {u["username"]: _LocalUser(**u) for u in raw.get("users", [])}

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump({"users": [asdict(u) for u in self._users.values()]}, fh, indent=2)

    def sign_in(self, username: str, password: str) -> CurrentUser:
        user = self._users.get(username)
        if user is None or user.password != password:
            raise AuthFailure("Incorrect username or password")
        self._current = username
        logger.info("Signed in %s", username)
        return CurrentUser(user.subject_id, user.username)

    def _signed_in(self) -> _LocalUser:
        if self._current is None or self._current not in self._users:
            raise AuthFailure("No signed-in user")
        return self._users[self._current]

    def get_current_user(self) -> CurrentUser:
        user = self._signed_in()
        return CurrentUser(user.subject_id, user.username)

    def fetch_session(self, force_refresh: bool = False) -> AuthSession:
        user = self._signed_in()
        # Single-group users get a bare string, mirroring what some token
        # decoders hand back for one-element claims.
        claims: Any
        if not user.groups:
            claims = None
        elif len(user.groups) == 1:
            claims = user.groups[0]
        else:
            claims = list(user.groups)
        return AuthSession(user.subject_id, user.username, claims)

    def sign_out(self) -> None:
        self._current = None

    def has_user(self, username: str) -> bool:
        return username in self._users

    def admin_create_user(self, username, attributes, temporary_password):
        if username in self._users:
            raise WriteFailed(f"User account already exists: {username}")
        user = _LocalUser(
            subject_id=str(uuid.uuid4()),
            username=username,
            password=temporary_password,
            attributes=dict(attributes),
        )
        self._users[username] = user
        self._save()
        return CurrentUser(user.subject_id, username)

    def admin_add_user_to_group(self, username, group):
        user = self._require(username)
        if group not in user.groups:
            user.groups.append(group)
        self._save()

    def admin_set_user_password(self, username, password, permanent=True):
        user = self._require(username)
        user.password = password
        user.permanent = permanent
        self._save()

    def admin_get_user(self, username):
        user = self._users.get(username)
        return None if user is None else CurrentUser(user.subject_id, user.username)

    def admin_delete_user(self, username):
        self._require(username)
        del self._users[username]
        self._save()
        if self._current == username:
            self._current = None

    def _require(self, username: str) -> _LocalUser:
        if username not in self._users:
            raise WriteFailed(f"User does not exist: {username}")
        return self._users[username]


# ─── Cognito user pool ───────────────────────────────────────────────────────

def _jwt_claims(token: str) -> dict:
    """Decode a JWT payload without verifying it (the token came from Cognito)."""
    payload = token.split(".")[1]
    payload += "=" * (-len(payload) % 4)
    return json.loads(base64.urlsafe_b64decode(payload))


class CognitoIdentityProvider(IdentityProvider):
    """
    Cognito user pool adapter.  ``sign_in`` runs USER_PASSWORD_AUTH and keeps
    the tokens; group claims are read from the id token's ``cognito:groups``.
    """

    def __init__(self, region: str, user_pool_id: str, client_id: str, client: Any = None):
        import boto3
        from botocore.exceptions import BotoCoreError, ClientError

        self._errors = (BotoCoreError, ClientError)
        self._client = client or boto3.client("cognito-idp", region_name=region)
        self.user_pool_id = user_pool_id
        self.client_id = client_id
        self._tokens: dict[str, str] = {}

    def sign_in(self, username: str, password: str) -> CurrentUser:
        try:
            resp = self._client.initiate_auth(
                ClientId=self.client_id,
                AuthFlow="USER_PASSWORD_AUTH",
                AuthParameters={"USERNAME": username, "PASSWORD": password},
            )
        except self._errors as exc:
            logger.error("Sign-in failed for %s: %s", username, exc)
            raise AuthFailure(str(exc)) from exc
        self._tokens = dict(resp["AuthenticationResult"])
        return self.get_current_user()

    def get_current_user(self) -> CurrentUser:
        claims = self._id_claims()
        return CurrentUser(claims["sub"], claims.get("cognito:username", claims.get("email", "")))

    def fetch_session(self, force_refresh: bool = False) -> AuthSession:
        if force_refresh:
            self._refresh()
        claims = self._id_claims()
        return AuthSession(
            subject_id=claims["sub"],
            username=claims.get("cognito:username", ""),
            group_claims=claims.get("cognito:groups"),
        )

    def sign_out(self) -> None:
        token = self._tokens.get("AccessToken")
        self._tokens = {}
        if token:
            try:
                self._client.global_sign_out(AccessToken=token)
            except self._errors as exc:
                logger.warning("Global sign-out failed: %s", exc)

    def _id_claims(self) -> dict:
        token = self._tokens.get("IdToken")
        if not token:
            raise AuthFailure("No signed-in user")
        return _jwt_claims(token)

    def _refresh(self) -> None:
        refresh_token = self._tokens.get("RefreshToken")
        if not refresh_token:
            raise AuthFailure("No session to refresh")
        try:
            resp = self._client.initiate_auth(
                ClientId=self.client_id,
                AuthFlow="REFRESH_TOKEN_AUTH",
                AuthParameters={"REFRESH_TOKEN": refresh_token},
            )
        except self._errors as exc:
            raise AuthFailure(str(exc)) from exc
        self._tokens.update(resp["AuthenticationResult"])

    # ── Admin operations ────────────────────────────────────────────────────

    def admin_create_user(self, username, attributes, temporary_password):
        try:
            resp = self._client.admin_create_user(
                UserPoolId=self.user_pool_id,
                Username=username,
                UserAttributes=[{"Name": k, "Value": v} for k, v in attributes.items()],
                TemporaryPassword=temporary_password,
                MessageAction="SUPPRESS",   # no welcome email
            )
        except self._errors as exc:
            raise WriteFailed(f"Failed to create user {username}", [str(exc)]) from exc
        user = resp["User"]
        attrs = {a["Name"]: a["Value"] for a in user.get("Attributes", [])}
        return CurrentUser(attrs.get("sub", user["Username"]), user["Username"])

    def admin_add_user_to_group(self, username, group):
        self._admin_call(
            "admin_add_user_to_group", username, GroupName=group,
        )

    def admin_set_user_password(self, username, password, permanent=True):
        self._admin_call(
            "admin_set_user_password", username, Password=password, Permanent=permanent,
        )

    def admin_get_user(self, username):
        try:
            resp = self._client.admin_get_user(UserPoolId=self.user_pool_id, Username=username)
        except self._errors as exc:
            code = getattr(exc, "response", {}).get("Error", {}).get("Code")
            if code == "UserNotFoundException":
                return None
            raise FetchFailed(f"Failed to look up user {username}", [str(exc)]) from exc
        attrs = {a["Name"]: a["Value"] for a in resp.get("UserAttributes", [])}
        return CurrentUser(attrs.get("sub", resp["Username"]), resp["Username"])

    def admin_delete_user(self, username):
        self._admin_call("admin_delete_user", username)

    def _admin_call(self, operation: str, username: str, **kwargs) -> None:
        try:
            getattr(self._client, operation)(
                UserPoolId=self.user_pool_id, Username=username, **kwargs
            )
        except self._errors as exc:
            raise WriteFailed(f"{operation} failed for {username}", [str(exc)]) from exc
