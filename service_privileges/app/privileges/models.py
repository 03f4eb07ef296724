"""
Privilege data models.

A privilege always has a name and can act on three levels:

| Field     | Description                                                          |
|-----------|----------------------------------------------------------------------|
| component | A feature in the system or an API endpoint acting on behalf of a user |
| group     | The ID of the user group (team, tenant) the privilege belongs to     |
| role      | The role the privilege was granted through (carried, never matched)  |

Every optional field holds one of three tagged values: a concrete string,
the wildcard or the absent marker. A wildcard on a *granted* privilege
matches any requested value for that field; a wildcard on the *requested*
side is compared literally.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

WILDCARD = "*"

PRIVILEGE_FIELDS = ("name", "component", "group", "role")

# Fields compared by the matching engine. Role is carried but not matched.
MATCHED_FIELDS = ("name", "component", "group")

PLUCKABLE_FIELDS = ("name", "component", "group")


class FieldKind(str, Enum):
    """Kind of a privilege field value."""
    CONCRETE = "concrete"
    WILDCARD = "wildcard"
    ABSENT = "absent"


@dataclass(frozen=True)
class FieldValue:
    """Tagged value of a single privilege field."""
    kind: FieldKind
    value: Any = None

    @classmethod
    def of(cls, raw: Any) -> "FieldValue":
        if raw is None:
            return ABSENT
        if raw == WILDCARD:
            return ANY
        return cls(FieldKind.CONCRETE, raw)

    @property
    def is_absent(self) -> bool:
        return self.kind is FieldKind.ABSENT

    @property
    def is_wildcard(self) -> bool:
        return self.kind is FieldKind.WILDCARD

    def matches(self, requested: "FieldValue") -> bool:
        """Match a granted value (self) against a requested value."""
        return self == requested or self.kind is FieldKind.WILDCARD

    def to_raw(self) -> Any:
        if self.kind is FieldKind.ABSENT:
            return None
        if self.kind is FieldKind.WILDCARD:
            return WILDCARD
        return self.value

    def __repr__(self) -> str:
        if self.kind is FieldKind.CONCRETE:
            return f"Concrete({self.value!r})"
        return self.kind.value.title()


ABSENT = FieldValue(FieldKind.ABSENT)
ANY = FieldValue(FieldKind.WILDCARD)


@dataclass(frozen=True)
class Privilege:
    """A (name, component, group, role) capability. Never mutated."""
    name: FieldValue
    component: FieldValue = ABSENT
    group: FieldValue = ABSENT
    role: FieldValue = ABSENT

    @classmethod
    def from_values(
        cls,
        name: Any,
        component: Any = None,
        group: Any = None,
        role: Any = None
    ) -> "Privilege":
        return cls(
            name=FieldValue.of(name),
            component=FieldValue.of(component),
            group=FieldValue.of(group),
            role=FieldValue.of(role)
        )

    def field(self, name: str) -> FieldValue:
        return getattr(self, name)

    def to_dict(self) -> Dict[str, Any]:
        """Raw four-key form; absent fields become None."""
        return {key: self.field(key).to_raw() for key in PRIVILEGE_FIELDS}

    def matches_selector(self, selector: Dict[str, Any]) -> bool:
        """Exact match on the given keys. Wildcards are compared literally."""
        raw = self.to_dict()
        return all(raw.get(key) == value for key, value in selector.items())


@dataclass(frozen=True)
class GrantedPrivilege:
    """A privilege stored against a user."""
    privilege_id: str
    user_id: str
    privilege: Privilege

    def to_dict(self) -> Dict[str, Any]:
        return {
            "privilege_id": self.privilege_id,
            "user_id": self.user_id,
            **self.privilege.to_dict()
        }


@dataclass(frozen=True)
class RoleRecord:
    """A named role, optionally scoped to a group, with an optional privilege template."""
    role_id: str
    name: str
    group: Optional[str] = None
    privilege: Optional[Privilege] = None


@dataclass(frozen=True)
class RoleAssignment:
    """A role assigned to a user, optionally within a group."""
    assignment_id: str
    user_id: str
    role: str
    group: Optional[str] = None


class PrivilegeCheckRequest(BaseModel):
    """Request model for a privilege check."""
    user_id: str = Field(..., description="User ID")
    name: Union[str, List[str]] = Field(..., description="Privilege name or names (any-of)")
    component: Optional[str] = Field(None, description="Component")
    group: Optional[str] = Field(None, description="Group")


class PrivilegeCheckResponse(BaseModel):
    """Response model for a privilege check."""
    allowed: bool = Field(..., description="Whether the user holds the privilege")


class GrantRequest(BaseModel):
    """Request model for granting one or more privileges."""
    user_id: str = Field(..., description="User ID")
    name: Union[str, List[str]] = Field(..., description="Privilege name or names")
    component: Optional[str] = Field(None, description="Component")
    group: Optional[str] = Field(None, description="Group")
    role: Optional[str] = Field(None, description="Role the grant belongs to")


class GrantResponse(BaseModel):
    """Response model for grant operations."""
    privilege_ids: List[str] = Field(default_factory=list, description="IDs in input order")


class PrivilegeSelector(BaseModel):
    """Privilege fields used for registration and exact-match lookups."""
    name: Optional[str] = None
    component: Optional[str] = None
    group: Optional[str] = None
    role: Optional[str] = None


class RoleCreateRequest(BaseModel):
    """Request model for registering a role."""
    name: str = Field(..., description="Role name")
    group: Optional[str] = Field(None, description="Group the role is scoped to")
    privileges: List[PrivilegeSelector] = Field(default_factory=list, description="Privilege templates")


class RoleAssignRequest(BaseModel):
    """Request model for assigning roles to a user."""
    user_id: str = Field(..., description="User ID")
    role: Union[str, List[str]] = Field(..., description="Role name or names")
    group: Optional[str] = Field(None, description="Group")
