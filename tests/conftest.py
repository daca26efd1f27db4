import logging

import pytest

from formcall.models.form_schema import FieldType, FormField, FormSchema


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def contact_fields():
    """Three fields given out of order, as a client may send them"""
    return [
        FormField(id="c", name="city", type=FieldType.TEXT, label="City", required=False, order=3),
        FormField(id="a", name="firstName", type=FieldType.TEXT, label="First name", required=True, order=1),
        FormField(id="b", name="lastName", type=FieldType.TEXT, label="Last name", required=True, order=2),
    ]


@pytest.fixture
def contact_schema(contact_fields):
    return FormSchema(fields=contact_fields)
