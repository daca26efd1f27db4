"""
Form field schema and the editor that owns it.

FormField and FormSchema are the pydantic models exchanged during the call
handshake. FormEditor is the UI-side owner of the live schema: it implements
the user-driven structural operations (add, update, delete, reorder, reset) and
the tool-driven value update used while a call is connected.
"""

import copy
import logging
import random
import string
import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

from formcall.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

_ID_ALPHABET = string.digits + string.ascii_lowercase


class FieldType(str, Enum):
    """Input type of a form field."""

    TEXT = "text"
    EMAIL = "email"
    PHONE = "tel"
    DATE = "date"
    MULTILINE = "textarea"


class FormField(BaseModel):
    """A single field of the form."""

    model_config = ConfigDict(validate_assignment=True)

    id: StrictStr = Field(..., frozen=True, description="Opaque unique identifier")
    name: StrictStr = Field(..., description="Key referenced by tool invocations")
    type: FieldType = Field(..., description="Input type of the field")
    label: StrictStr = Field(..., description="Display text")
    required: StrictBool = Field(..., description="Whether the field must be collected")
    placeholder: Optional[StrictStr] = Field(None, description="Hint shown when empty")
    value: Optional[StrictStr] = Field(None, description="Currently collected value")
    order: StrictInt = Field(..., description="Display and collection sequence")


class FormSchema(BaseModel):
    """Ordered collection of form fields."""

    fields: List[FormField] = Field(default_factory=list)

    def sorted_fields(self) -> List[FormField]:
        """Return the fields ordered by their order value (stable for ties)."""
        return sorted(self.fields, key=lambda field: field.order)

    def find_by_name(self, name: str) -> Optional[FormField]:
        """Return the first field, in order sequence, whose name matches."""
        for field in self.sorted_fields():
            if field.name == name:
                return field
        return None


DEFAULT_FIELDS = [
    FormField(
        id="firstName",
        name="firstName",
        type=FieldType.TEXT,
        label="First name",
        required=True,
        placeholder="Enter your first name",
        order=1,
    ),
    FormField(
        id="lastName",
        name="lastName",
        type=FieldType.TEXT,
        label="Last name",
        required=True,
        placeholder="Enter your last name",
        order=2,
    ),
    FormField(
        id="birthday",
        name="birthday",
        type=FieldType.DATE,
        label="Birthday date",
        required=False,
        order=3,
    ),
    FormField(
        id="city",
        name="city",
        type=FieldType.TEXT,
        label="City",
        required=False,
        placeholder="Enter your city",
        order=4,
    ),
    FormField(
        id="zipCode",
        name="zipCode",
        type=FieldType.TEXT,
        label="Zip code",
        required=False,
        placeholder="Enter your zip code",
        order=5,
    ),
    FormField(
        id="message",
        name="message",
        type=FieldType.MULTILINE,
        label="Message",
        required=False,
        placeholder="Enter your message",
        order=6,
    ),
]


def default_schema() -> FormSchema:
    """Return a fresh copy of the built-in field set."""
    return FormSchema(fields=copy.deepcopy(DEFAULT_FIELDS))


def generate_field_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"field_{int(time.time() * 1000)}_{suffix}"


class FormEditor:
    """
    Owner of the live form schema.

    User-driven operations are rejected as no-ops while the editor is locked,
    which happens for as long as a call is connected. Tool-driven value updates
    arriving from the agent always go through, locked or not.
    """

    def __init__(self, schema: Optional[FormSchema] = None):
        self.schema = schema if schema is not None else default_schema()
        self.locked = False

    @property
    def fields(self) -> List[FormField]:
        return self.schema.fields

    def sorted_fields(self) -> List[FormField]:
        return self.schema.sorted_fields()

    def lock(self) -> None:
        self.locked = True

    def unlock(self) -> None:
        self.locked = False

    def _rejected(self, operation: str) -> bool:
        if self.locked:
            logger.debug(f"Ignoring {operation} while the form is locked")
            return True
        return False

    def _get(self, field_id: str) -> Optional[FormField]:
        for field in self.schema.fields:
            if field.id == field_id:
                return field
        return None

    def add_field(self) -> Optional[FormField]:
        """
        Append a new text field after the current last one.

        Returns:
            The created field, or None if the editor is locked
        """
        if self._rejected("add_field"):
            return None

        next_order = max((field.order for field in self.schema.fields), default=0) + 1
        field = FormField(
            id=generate_field_id(),
            name=f"field{len(self.schema.fields) + 1}",
            type=FieldType.TEXT,
            label="New Field",
            required=False,
            placeholder="",
            order=next_order,
        )
        self.schema.fields.append(field)
        logger.debug(f"Added field {field.id} with order {next_order}")
        return field

    def update_field(self, field_id: str, **changes) -> Optional[FormField]:
        """
        Merge changes into the field matching field_id.

        Unknown ids are ignored. The id itself cannot be changed.
        """
        if self._rejected("update_field"):
            return None

        field = self._get(field_id)
        if field is None:
            return None

        changes.pop("id", None)
        for key, value in changes.items():
            setattr(field, key, value)
        return field

    def set_user_value(self, field_id: str, value: str) -> Optional[FormField]:
        """Store a value typed by the user into a field."""
        return self.update_field(field_id, value=value)

    def delete_field(self, field_id: str) -> bool:
        """Remove a field. Remaining order values are left untouched."""
        if self._rejected("delete_field"):
            return False

        before = len(self.schema.fields)
        self.schema.fields = [f for f in self.schema.fields if f.id != field_id]
        return len(self.schema.fields) != before

    def reorder(self, dragged_id: str, target_id: str) -> bool:
        """
        Move the dragged field to the target's position.

        After a successful move every field's order is renumbered to 1..N.
        """
        if self._rejected("reorder"):
            return False
        if dragged_id == target_id:
            return False

        fields = self.schema.sorted_fields()
        ids = [field.id for field in fields]
        if dragged_id not in ids or target_id not in ids:
            return False

        dragged_index = ids.index(dragged_id)
        target_index = ids.index(target_id)
        dragged = fields.pop(dragged_index)
        fields.insert(target_index, dragged)

        for position, field in enumerate(fields):
            field.order = position + 1
        self.schema.fields = fields
        return True

    def reset_to_default(self) -> bool:
        """Replace the whole schema with the built-in field set."""
        if self._rejected("reset_to_default"):
            return False
        self.schema = default_schema()
        return True

    def apply_tool_value(self, name: str, value: str) -> Optional[FormField]:
        """
        Set the value of the first field named name, ignoring the lock.

        Returns:
            The updated field, or None when no field has that name
        """
        field = self.schema.find_by_name(name)
        if field is None:
            return None
        field.value = value
        return field
