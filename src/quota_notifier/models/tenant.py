# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Validated shapes returned by the tenant data source and identity service.

These are the only fields the alerting engine reads from its collaborators.
Clients build them from raw API payloads; a payload that does not fit raises
``pydantic.ValidationError``, which the clients surface as a data-source error.
"""

from pydantic import BaseModel, Field

from .validators import Email, MegaBytes, NonEmptyStr


class Quota(BaseModel, frozen=True):
    """Memory ceiling assigned to an organization."""

    memory_limit_mb: MegaBytes


class Organization(BaseModel, frozen=True):
    """A billable tenant. ``quota`` is None when none is assigned."""

    id: NonEmptyStr
    name: NonEmptyStr
    quota: Quota | None = None


class Space(BaseModel, frozen=True):
    id: NonEmptyStr
    name: NonEmptyStr


class Application(BaseModel, frozen=True):
    """A deployed application; only its sizing matters here."""

    name: str = ""
    instances: int = Field(default=0, ge=0)
    memory_mb: MegaBytes = 0


class ManagerRef(BaseModel, frozen=True):
    """Reference to an organization manager, resolved via the identity service."""

    user_ref: NonEmptyStr


class UserProfile(BaseModel, frozen=True):
    """Identity-service profile for one user."""

    user_ref: NonEmptyStr
    given_name: str = ""
    family_name: str = ""
    primary_email: Email = None

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.given_name, self.family_name) if part) or self.user_ref
